"""
Tests for payload recovery from fragment directories.
"""

import json
import pytest

from hdp_engine import (
    HDPEngine,
    build_manifest,
    save_fragments,
    load_fragments,
    load_manifest,
    save_manifest,
    verify_manifest,
    recover_payload,
    analyze_recoverability,
    load_and_verify_fragments,
    generate_key,
    seal,
    FragmentFormatError,
    ManifestError,
)


def create_test_fragments(tmp_path, original_data, k=3, n=5, sealed=False):
    """
    Helper to encode data, save fragments and build a manifest.

    Returns:
        Tuple of (manifest_dict, fragments_dir, paths by shard index)
    """
    fragments = HDPEngine(total_shards=n, threshold_shards=k).encode(original_data)

    fragments_dir = tmp_path / "fragments"
    paths = save_fragments(fragments_dir, fragments)

    manifest = build_manifest(fragments, original=original_data, sealed=sealed)
    return manifest, fragments_dir, paths


class TestRecoverPayload:
    """Tests for recover_payload function."""

    def test_recover_simple(self, tmp_path):
        """Should recover payload from all fragments."""
        original = b"Hello, World! This is test data."
        manifest, fragments_dir, _ = create_test_fragments(tmp_path, original)

        data, report = recover_payload(manifest, fragments_dir)

        assert data == original
        assert report.success
        assert report.hash_verified
        assert report.fragments_valid == 5
        assert report.fragments_required == 3

    def test_recover_with_missing_fragments(self, tmp_path):
        """Should recover with some fragments missing."""
        original = b"Data for partial reconstruction test."
        manifest, fragments_dir, paths = create_test_fragments(tmp_path, original, k=3, n=5)

        # Delete two fragments (still have 3, which is enough)
        paths[1].unlink()
        paths[3].unlink()

        data, report = recover_payload(manifest, fragments_dir)

        assert data == original
        assert report.success
        assert report.fragments_valid == 3

    def test_recover_fails_with_too_few_fragments(self, tmp_path):
        """Should fail when fewer than k fragments available."""
        original = b"Test data"
        manifest, fragments_dir, paths = create_test_fragments(tmp_path, original, k=3, n=5)

        for i in (0, 2, 4):
            paths[i].unlink()

        with pytest.raises(ManifestError, match="Need 3"):
            recover_payload(manifest, fragments_dir)

    def test_recover_skips_corrupted_fragment(self, tmp_path):
        """Should skip a corrupted fragment file when enough valid ones remain."""
        original = b"Important data that must be recovered."
        manifest, fragments_dir, paths = create_test_fragments(tmp_path, original, k=3, n=5)

        record = json.loads(paths[0].read_text())
        record["payload"] = "Y29ycnVwdGVk"
        paths[0].write_text(json.dumps(record))

        data, report = recover_payload(manifest, fragments_dir)

        assert data == original
        assert report.success
        assert report.fragments_valid == 4
        assert not report.fragment_details[0].valid

    def test_recover_skips_unreadable_file(self, tmp_path):
        original = b"Survives a garbage file."
        manifest, fragments_dir, paths = create_test_fragments(tmp_path, original)

        paths[2].write_text("not json at all")

        data, report = recover_payload(manifest, fragments_dir)

        assert data == original
        assert "Unreadable" in report.fragment_details[2].error

    def test_recover_hash_mismatch(self, tmp_path):
        original = b"Hash verification test data."
        manifest, fragments_dir, _ = create_test_fragments(tmp_path, original)
        manifest["original_hash"] = "00" * 32

        with pytest.raises(ManifestError, match="Hash mismatch"):
            recover_payload(manifest, fragments_dir)

        data, report = recover_payload(manifest, fragments_dir, verify_hash=False)
        assert data == original
        assert not report.hash_verified

    def test_recover_binary_data(self, tmp_path):
        """Should handle arbitrary binary data."""
        original = bytes(range(256)) * 10
        manifest, fragments_dir, _ = create_test_fragments(tmp_path, original)

        data, report = recover_payload(manifest, fragments_dir)

        assert data == original
        assert report.success

    def test_recover_sealed(self, tmp_path):
        key = generate_key()
        blob = seal(b"credential: s3cr3t", key).to_bytes()
        manifest, fragments_dir, paths = create_test_fragments(tmp_path, blob, sealed=True)
        paths[0].unlink()

        data, report = recover_payload(manifest, fragments_dir, key=key)

        assert data == b"credential: s3cr3t"
        assert report.unsealed
        assert report.hash_verified

    def test_recover_sealed_without_key(self, tmp_path):
        blob = seal(b"secret", generate_key()).to_bytes()
        manifest, fragments_dir, _ = create_test_fragments(tmp_path, blob, sealed=True)

        with pytest.raises(ManifestError, match="key required"):
            recover_payload(manifest, fragments_dir)

    def test_recover_sealed_wrong_key(self, tmp_path):
        blob = seal(b"secret", generate_key()).to_bytes()
        manifest, fragments_dir, _ = create_test_fragments(tmp_path, blob, sealed=True)

        with pytest.raises(ManifestError, match="Decryption failed"):
            recover_payload(manifest, fragments_dir, key=generate_key())

    def test_report_to_dict(self, tmp_path):
        manifest, fragments_dir, _ = create_test_fragments(tmp_path, b"report me")

        _, report = recover_payload(manifest, fragments_dir)
        as_dict = report.to_dict()

        assert as_dict["success"]
        assert len(as_dict["fragment_details"]) == 5
        json.dumps(as_dict)


class TestAnalyzeRecoverability:
    """Tests for analyze_recoverability function."""

    def test_analyze_all_available(self, tmp_path):
        """Should report feasible when all fragments present."""
        manifest, fragments_dir, _ = create_test_fragments(tmp_path, b"Test data")

        analysis = analyze_recoverability(manifest, fragments_dir)

        assert analysis["feasible"]
        assert analysis["fragments_valid"] == 5
        assert analysis["fast_path"]
        assert analysis["redundancy_margin"] == 2

    def test_analyze_partial_available(self, tmp_path):
        """Should report correct feasibility with missing fragments."""
        manifest, fragments_dir, paths = create_test_fragments(tmp_path, b"Test data", k=3, n=5)

        paths[1].unlink()
        paths[3].unlink()

        analysis = analyze_recoverability(manifest, fragments_dir)

        assert analysis["feasible"]
        assert analysis["fragments_valid"] == 3
        assert analysis["missing_count"] == 2
        assert not analysis["fast_path"]

    def test_analyze_not_feasible(self, tmp_path):
        """Should report not feasible when too few fragments."""
        manifest, fragments_dir, paths = create_test_fragments(tmp_path, b"Test data", k=3, n=5)

        for i in (0, 1, 2):
            paths[i].unlink()

        analysis = analyze_recoverability(manifest, fragments_dir)

        assert not analysis["feasible"]
        assert analysis["fragments_valid"] == 2
        assert "more shard" in analysis["message"].lower()

    def test_analyze_without_fragment_dir(self):
        """Should provide theoretical analysis without checking files."""
        manifest = {
            "original_size": 100,
            "encoding": {"total_shards": 5, "threshold_shards": 3},
            "fragments": [{"shard_index": i} for i in range(5)]
        }

        analysis = analyze_recoverability(manifest)

        assert analysis["feasible"]
        assert "note" in analysis


class TestLoadAndVerifyFragments:
    """Tests for load_and_verify_fragments function."""

    def test_load_valid_fragments(self, tmp_path):
        manifest, fragments_dir, _ = create_test_fragments(tmp_path, b"Test data for loading.")

        infos = load_and_verify_fragments(manifest, fragments_dir)

        assert len(infos) == 5
        assert all(f.valid for f in infos)
        assert all(f.fragment is not None for f in infos)

    def test_load_missing_fragment(self, tmp_path):
        """Should mark missing fragments as invalid."""
        manifest, fragments_dir, paths = create_test_fragments(tmp_path, b"Test data")

        paths[2].unlink()

        infos = load_and_verify_fragments(manifest, fragments_dir)

        missing = next(f for f in infos if f.index == 2)
        assert not missing.valid
        assert "not found" in missing.error.lower()

    def test_load_swapped_fragment(self, tmp_path):
        """A file holding a different fragment than declared is invalid."""
        manifest, fragments_dir, paths = create_test_fragments(tmp_path, b"Test data")

        paths[1].write_text(paths[0].read_text())

        infos = load_and_verify_fragments(manifest, fragments_dir)

        swapped = next(f for f in infos if f.index == 1)
        assert not swapped.valid
        assert "mismatch" in swapped.error.lower()


class TestStore:
    """Tests for the on-disk fragment layout."""

    def test_save_and_load_all(self, tmp_path):
        fragments = HDPEngine(total_shards=4, threshold_shards=2).encode(b"stored payload")

        save_fragments(tmp_path, reversed(fragments))
        save_manifest(build_manifest(fragments), tmp_path / "manifest.json")

        assert load_fragments(tmp_path) == fragments

    def test_load_rejects_non_object(self, tmp_path):
        (tmp_path / "hdp_bad.json").write_text("[1, 2, 3]")

        with pytest.raises(FragmentFormatError):
            load_fragments(tmp_path)


class TestEndToEnd:
    """End-to-end integration tests."""

    def test_full_pipeline(self, tmp_path):
        """Should complete full encode -> save -> load -> recover cycle."""
        original = b"Complete end-to-end test with real RS encoding."
        manifest, fragments_dir, _ = create_test_fragments(tmp_path, original, k=3, n=5)

        manifest_file = tmp_path / "manifest.json"
        save_manifest(manifest, manifest_file)

        loaded_manifest = load_manifest(manifest_file)
        verify_manifest(loaded_manifest, fragments_dir)

        analysis = analyze_recoverability(loaded_manifest, fragments_dir)
        assert analysis["feasible"]

        data, report = recover_payload(loaded_manifest, fragments_dir)
        assert data == original
        assert report.success
        assert report.hash_verified

    def test_disaster_recovery_scenario(self, tmp_path):
        """Should recover data after losing max allowable fragments."""
        original = b"Critical data that must survive disaster."
        manifest, fragments_dir, paths = create_test_fragments(tmp_path, original, k=3, n=5)

        # Lose the maximum allowable fragments (n - k = 2)
        paths[0].unlink()
        paths[2].unlink()

        data, report = recover_payload(manifest, fragments_dir)

        assert data == original
        assert report.success
        assert report.fragments_valid == 3
