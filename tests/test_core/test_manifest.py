"""Tests for bootstrapper.core.manifest module."""

import json

import pytest

from bootstrapper.core.errors import ManifestParseError, NetworkError, VerificationError
from bootstrapper.core.manifest import ManifestFetcher, merge_manifests, parse_manifest
from bootstrapper.core.types import (
    ArtifactRole,
    Manifest,
    OverlayManifest,
    TrustedManifest,
    TrustLevel,
)

HASH_A = "a" * 64
HASH_B = "b" * 64


def _artifact(name: str, digest: str = HASH_A) -> dict:
    return {"name": name, "path": f"https://example.net/{name}", "hash": digest, "size": 10}


class TestParseManifest:
    """Test manifest parsing."""

    def test_parse_wire_names(self):
        data = json.dumps({
            "patchMinor": "7",
            "requiredLauncherVersion": "2.6.0",
            "requiredJVMVersion": "11",
            "artifacts": [_artifact("client-1.10.jar"), _artifact("client-patch-7.jar", HASH_B)],
            "clientJvmArguments": ["-Xmx512m"],
            "launcherJvmArguments": ["-Xss2m"],
            "launcherJvmWindowsArguments": ["-Dwin=1"],
            "launcherJvmMacArguments": ["-Dmac=1"],
            "removes": ["META-INF/"],
        }).encode()

        manifest = parse_manifest(data, TrustedManifest)

        assert manifest.patch_minor == "7"
        assert manifest.required_launcher_version == "2.6.0"
        assert manifest.required_runtime_version == "11"
        assert [a.name for a in manifest.artifacts] == ["client-1.10.jar", "client-patch-7.jar"]
        assert manifest.artifacts[0].role is ArtifactRole.PRIMARY
        assert manifest.artifacts[1].role is ArtifactRole.PATCH
        assert manifest.artifacts[1].patch_version == "7"
        assert manifest.removes == ["META-INF/"]
        assert manifest.trust is TrustLevel.VERIFIED

    def test_optional_fields_absent(self):
        manifest = parse_manifest(b'{"artifacts": []}', TrustedManifest)

        assert manifest.patch_minor is None
        assert manifest.client_arguments is None
        assert manifest.removes == []

    def test_null_diffs_treated_as_empty(self):
        data = json.dumps({"artifacts": [{**_artifact("a.jar"), "diffs": None}]}).encode()
        manifest = parse_manifest(data, TrustedManifest)
        assert manifest.artifacts[0].diffs == []

    def test_diff_wire_names(self):
        diff = {
            "name": "a-1-2.diff",
            "from": "a-1.jar",
            "fromHash": HASH_B.upper(),
            "path": "https://example.net/a-1-2.diff",
            "hash": HASH_A,
            "size": 3,
        }
        data = json.dumps({"artifacts": [{**_artifact("a.jar"), "diffs": [diff]}]}).encode()

        parsed = parse_manifest(data, TrustedManifest).artifacts[0].diffs[0]

        assert parsed.from_name == "a-1.jar"
        assert parsed.from_hash == HASH_B

    def test_content_cannot_claim_trust(self):
        manifest = parse_manifest(b'{"trust": "verified"}', OverlayManifest)
        assert manifest.trust is TrustLevel.UNVERIFIED

    def test_content_cannot_claim_role(self):
        data = json.dumps({
            "artifacts": [
                {**_artifact("client-1.jar"), "role": "plain"},
                {**_artifact("evil.jar", HASH_B), "role": "primary", "patch_version": "7"},
            ]
        }).encode()

        manifest = parse_manifest(data, OverlayManifest)

        assert [(a.name, a.role) for a in manifest.artifacts] == [
            ("client-1.jar", ArtifactRole.PRIMARY),
            ("evil.jar", ArtifactRole.PLAIN),
        ]
        assert manifest.artifacts[1].patch_version is None

    @pytest.mark.parametrize(
        "data",
        [
            b"not json",
            b"[1, 2]",
            b'{"artifacts": [{"name": "a.jar"}]}',
            b'{"artifacts": [{"name": "a.jar", "path": "x", "hash": "zz", "size": 1}]}',
            b'{"artifacts": [{"name": "a.jar", "path": "x", "hash": "' + HASH_A.encode() + b'", "size": -1}]}',
        ],
    )
    def test_malformed(self, data: bytes):
        with pytest.raises(ManifestParseError):
            parse_manifest(data, TrustedManifest)


class TestManifestFetcher:
    """Test fetching and signature verification."""

    def test_signed_manifest(self, http_transport, server, sign, certificate):
        content = json.dumps({"artifacts": [_artifact("a.jar")]}).encode()
        url = server.add("bootstrap.json", content)
        sig_url = server.add("bootstrap.json.sha256", sign(content))

        manifest = ManifestFetcher(http_transport).fetch(url, sig_url, certificate)

        assert isinstance(manifest, TrustedManifest)
        assert manifest.trust is TrustLevel.VERIFIED
        assert server.user_agents[0] == "Bootstrapper/2.6.0"

    def test_tampered_manifest_rejected(self, http_transport, server, sign, certificate):
        content = json.dumps({"artifacts": [_artifact("a.jar")]}).encode()
        url = server.add("bootstrap.json", content.replace(b"a.jar", b"b.jar"))
        sig_url = server.add("bootstrap.json.sha256", sign(content))

        with pytest.raises(VerificationError):
            ManifestFetcher(http_transport).fetch(url, sig_url, certificate)

    def test_signature_over_raw_bytes(self, http_transport, server, sign, certificate):
        """Whitespace changes break the signature even if the JSON is equal."""
        content = b'{"artifacts": []}'
        url = server.add("bootstrap.json", b'{"artifacts":[]}')
        sig_url = server.add("bootstrap.json.sha256", sign(content))

        with pytest.raises(VerificationError):
            ManifestFetcher(http_transport).fetch(url, sig_url, certificate)

    def test_missing_signature(self, http_transport, server, certificate):
        url = server.add("bootstrap.json", b"{}")

        with pytest.raises(NetworkError) as exc_info:
            ManifestFetcher(http_transport).fetch(url, f"{url}.sha256", certificate)

        assert exc_info.value.status_code == 404

    def test_unsigned_overlay(self, http_transport, server):
        url = server.add("overlay.json", json.dumps({"artifacts": [_artifact("b.jar")]}).encode())

        manifest = ManifestFetcher(http_transport).fetch(url)

        assert isinstance(manifest, OverlayManifest)
        assert manifest.trust is TrustLevel.UNVERIFIED

    def test_signature_without_certificate(self, http_transport):
        with pytest.raises(ValueError):
            ManifestFetcher(http_transport).fetch("https://example.net/a", "https://example.net/a.sig")


class TestMergeManifests:
    """Test trusted + overlay merging."""

    def test_no_overlay(self):
        trusted = TrustedManifest(patch_minor="7", artifacts=[_artifact("a.jar")])

        merged = merge_manifests(trusted, None)

        assert type(merged) is Manifest
        assert merged.trust is TrustLevel.VERIFIED
        assert merged.patch_minor == "7"
        assert [a.name for a in merged.artifacts] == ["a.jar"]

    def test_lists_concatenated_trusted_first(self):
        trusted = TrustedManifest(artifacts=[_artifact("x.jar")], removes=["a/"])
        overlay = OverlayManifest(artifacts=[_artifact("y.jar", HASH_B)], removes=["b/"])

        merged = merge_manifests(trusted, overlay)

        assert [a.name for a in merged.artifacts] == ["x.jar", "y.jar"]
        assert merged.removes == ["a/", "b/"]

    def test_no_deduplication(self):
        trusted = TrustedManifest(artifacts=[_artifact("x.jar")])
        overlay = OverlayManifest(artifacts=[_artifact("x.jar", HASH_B)])

        merged = merge_manifests(trusted, overlay)

        assert len(merged.artifacts) == 2

    def test_scalars_concatenated(self):
        trusted = TrustedManifest(required_launcher_version="1.2")
        overlay = OverlayManifest(required_launcher_version=".3")

        merged = merge_manifests(trusted, overlay)

        assert merged.required_launcher_version == "1.2.3"

    def test_present_side_wins(self):
        trusted = TrustedManifest(patch_minor=None, launcher_arguments=["-a"])
        overlay = OverlayManifest(patch_minor="8", launcher_arguments=None)

        merged = merge_manifests(trusted, overlay)

        assert merged.patch_minor == "8"
        assert merged.launcher_arguments == ["-a"]
        assert merged.client_arguments is None

    def test_overlay_marks_unverified(self):
        merged = merge_manifests(TrustedManifest(), OverlayManifest())
        assert merged.trust is TrustLevel.UNVERIFIED
