"""
fluid-diagnose-bundler — unit tests for security redaction

File: tests/unit/security/test_redaction.py

Purpose
- Verify deterministic redaction of structured values, text, and raw bytes.

What this test file should cover
- Key-based structural scrubbing (including nested and case-insensitive keys).
- Marker-pattern redaction for text and bytes, with non-UTF-8 bytes preserved.
- Fail-closed normalization errors.
- Policy extensions and secret scanning helpers.
- Properties: assigned values and sensitive keys at any depth never survive.

Functional requirements
- Offline only.

Non-functional requirements
- Deterministic and hard to bypass.
"""

from __future__ import annotations

import math
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import UTC, datetime

import pytest

import fluid_diagnose_bundler.security as security_pkg
from fluid_diagnose_bundler.domain.models import BundleMetadata
from fluid_diagnose_bundler.security.redaction import (
    REDACTED_VALUE,
    RedactionConfig,
    RedactionError,
    Redactor,
    is_sensitive_key,
    redact_bytes,
    redact_text,
    scan_for_secrets,
    scrub_structured,
)

try:
    from hypothesis import given, settings
    from hypothesis import strategies as st

    HYPOTHESIS_AVAILABLE = True
except ModuleNotFoundError:  # pragma: no cover - fallback path
    HYPOTHESIS_AVAILABLE = False


def _as_object_mapping(value: object) -> Mapping[str, object]:
    assert isinstance(value, Mapping)
    return value


def test_structured_scrub_masks_password_and_keeps_other_fields() -> None:
    scrubbed = scrub_structured({"password": "abc123", "name": "x"})

    assert scrubbed == {"password": REDACTED_VALUE, "name": "x"}


def test_structured_scrub_replaces_sensitive_subtrees_wholesale() -> None:
    value = {
        "metadata": {"name": "demo"},
        "spec": {
            "secretRef": {"name": "s3-creds", "items": ["a", "b"]},
            "mounts": [{"mountPoint": "s3://bucket", "encryptOptions": {"AccessKeyID": "AKIA"}}],
        },
        "Authorization": "Bearer abc",
    }

    scrubbed = _as_object_mapping(scrub_structured(value))

    spec = _as_object_mapping(scrubbed["spec"])
    assert spec["secretRef"] == REDACTED_VALUE
    mounts = spec["mounts"]
    assert isinstance(mounts, list)
    assert mounts[0]["mountPoint"] == "s3://bucket"
    assert mounts[0]["encryptOptions"] == {"AccessKeyID": REDACTED_VALUE}
    assert scrubbed["Authorization"] == REDACTED_VALUE
    assert scrubbed["metadata"] == {"name": "demo"}


def test_structured_scrub_does_not_mutate_input() -> None:
    value = {"token": "abc", "nested": {"password": "p@ss"}}

    scrub_structured(value)

    assert value == {"token": "abc", "nested": {"password": "p@ss"}}


def test_structured_scrub_normalizes_models_and_datetimes() -> None:
    metadata = BundleMetadata(
        creation_timestamp=datetime(2024, 1, 1, 12, 0, tzinfo=UTC),
        fluid_version="1.0.0",
        k8s_version="1.29",
    )

    scrubbed = scrub_structured({"meta": metadata, "at": datetime(2024, 1, 1, tzinfo=UTC)})

    assert scrubbed == {
        "meta": {
            "creationTimestamp": "2024-01-01T12:00:00Z",
            "fluidVersion": "1.0.0",
            "k8sVersion": "1.29",
        },
        "at": "2024-01-01T00:00:00Z",
    }


def test_structured_scrub_walks_plain_dataclasses() -> None:
    @dataclass
    class Mount:
        name: str
        password: str

    assert scrub_structured([Mount(name="m", password="pw")]) == [
        {"name": "m", "password": REDACTED_VALUE}
    ]


@pytest.mark.parametrize(
    "value",
    [
        {"ratio": math.nan},
        {"ratio": math.inf},
        {"items": {1, 2}},
        {("tuple", "key"): "x"},
        object(),
    ],
)
def test_structured_scrub_fails_closed_on_unsupported_values(value: object) -> None:
    with pytest.raises(RedactionError):
        scrub_structured(value)


def test_structured_scrub_rejects_reference_cycles() -> None:
    cyclic: list[object] = []
    cyclic.append(cyclic)

    with pytest.raises(RedactionError, match="reference cycle"):
        scrub_structured({"items": cyclic})


def test_structured_scrub_allows_shared_non_cyclic_references() -> None:
    shared = {"name": "x"}

    assert scrub_structured({"a": shared, "b": shared}) == {"a": {"name": "x"}, "b": {"name": "x"}}


def test_text_redaction_keeps_marker_and_masks_value() -> None:
    assert redact_text("password=abc123") == f"password: {REDACTED_VALUE}"
    assert redact_text("TOKEN : 'xyz'") == f"TOKEN: {REDACTED_VALUE}"
    assert redact_text('secret="s3cr3t" next') == f"secret: {REDACTED_VALUE} next"


def test_text_redaction_masks_every_match() -> None:
    text = "user=bob password=a1 mode=ro\napi key: k2 token=t3"

    redacted = redact_text(text)

    assert redacted == (
        f"user=bob password: {REDACTED_VALUE} mode=ro\n"
        f"api key: {REDACTED_VALUE} token: {REDACTED_VALUE}"
    )


def test_text_without_markers_is_unchanged() -> None:
    text = "mounted s3://bucket at /data in 12.3s"

    assert redact_text(text) == text


def test_text_redaction_is_idempotent() -> None:
    once = redact_text("password=abc123 token=xyz")

    assert redact_text(once) == once


def test_bytes_redaction_preserves_non_utf8_content() -> None:
    data = b"\xff\xfe header token=abc \x80\x81 tail"

    assert redact_bytes(data) == b"\xff\xfe header token: [REDACTED] \x80\x81 tail"


def test_bytes_redaction_rejects_text_input() -> None:
    with pytest.raises(TypeError):
        Redactor().redact("password=abc")  # type: ignore[arg-type]


def test_sensitive_key_matching_is_substring_and_case_insensitive() -> None:
    assert is_sensitive_key("password")
    assert is_sensitive_key("DB_PASSWORD")
    assert is_sensitive_key("accessKeyId")
    assert is_sensitive_key("Authorization")
    assert not is_sensitive_key("name")
    assert not is_sensitive_key("mountPoint")


def test_custom_policy_adds_key_terms_text_patterns_and_mask() -> None:
    config = RedactionConfig(
        replacement="***",
        extra_key_terms=frozenset({"cookie"}),
        extra_text_patterns=(r"sk-[A-Za-z0-9]+",),
    )

    assert scrub_structured({"Set-Cookie": "a=b"}, config=config) == {"Set-Cookie": "***"}
    assert redact_text("use sk-abc123 now", config=config) == "use *** now"
    assert redact_text("password=x", config=config) == "password: ***"
    assert redact_bytes(b"sk-abc123", config=config) == b"***"


def test_scan_for_secrets_reports_value_spans() -> None:
    text = "password=abc token: xyz"

    findings = scan_for_secrets(text)

    assert [item.sample for item in findings] == ["abc", "xyz"]
    assert all(text[item.start : item.end] == item.sample for item in findings)
    assert {item.rule for item in findings} == {"sensitive_assignment"}


def test_security_package_exports_are_consistent() -> None:
    assert security_pkg.redact_text("password=abc123") == f"password: {REDACTED_VALUE}"
    assert security_pkg.REDACTED_VALUE == "[REDACTED]"


def test_text_and_bytes_agree_on_non_ascii_whitespace() -> None:
    text = "token=abc\u00a0def tail"

    assert redact_text(text) == f"token: {REDACTED_VALUE} tail"
    assert redact_bytes(text.encode("utf-8")) == redact_text(text).encode("utf-8")


def _sensitive_values(value: object) -> list[object]:
    found: list[object] = []
    if isinstance(value, dict):
        for key, item in value.items():
            if is_sensitive_key(key):
                found.append(item)
            else:
                found.extend(_sensitive_values(item))
    elif isinstance(value, list):
        for item in value:
            found.extend(_sensitive_values(item))
    return found


if HYPOTHESIS_AVAILABLE:
    _VALUE_ALPHABET = "abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789_-./@"
    _TEXT_ALPHABET = _VALUE_ALPHABET + " =:'\"\n\tpasswordtokenkeysecret"

    @settings(max_examples=200, deadline=None)
    @given(
        marker=st.sampled_from(["password", "token", "key", "secret", "Password", "API_KEY"]),
        separator=st.sampled_from(["=", ":", " = ", ": "]),
        value=st.text(alphabet=_VALUE_ALPHABET, min_size=1, max_size=40),
    )
    def test_property_assigned_values_never_survive(
        marker: str, separator: str, value: str
    ) -> None:
        assert redact_text(f"{marker}{separator}{value}") == f"{marker}: {REDACTED_VALUE}"
        assert redact_bytes(f"{marker}{separator}{value}".encode()) == (
            f"{marker}: {REDACTED_VALUE}".encode()
        )

    @settings(max_examples=200, deadline=None)
    @given(text=st.text(alphabet=_TEXT_ALPHABET, max_size=120))
    def test_property_bytes_and_text_rules_agree_on_ascii(text: str) -> None:
        assert redact_bytes(text.encode("utf-8")) == redact_text(text).encode("utf-8")

    _PLAIN_KEYS = st.text(alphabet="abcdfghilmnqruvwxz_", min_size=1, max_size=8)
    _SENSITIVE_KEYS = st.builds(
        lambda prefix, term, case: prefix + case(term),
        st.sampled_from(["", "db_", "X-", "client"]),
        st.sampled_from(["authorization", "key", "password", "secret", "token"]),
        st.sampled_from([str.lower, str.upper, str.title]),
    )
    _LEAVES = st.one_of(
        st.none(), st.booleans(), st.integers(), st.text(alphabet=_VALUE_ALPHABET, max_size=12)
    )
    _TREES = st.recursive(
        _LEAVES,
        lambda children: st.one_of(
            st.lists(children, max_size=4),
            st.dictionaries(st.one_of(_PLAIN_KEYS, _SENSITIVE_KEYS), children, max_size=4),
        ),
        max_leaves=30,
    )

    @settings(max_examples=200, deadline=None)
    @given(
        tree=_TREES,
        secret_key=_SENSITIVE_KEYS,
        secret=_TREES,
        wrappers=st.lists(st.one_of(_PLAIN_KEYS, st.just(None)), max_size=6),
    )
    def test_property_sensitive_keys_never_keep_values_at_any_depth(
        tree: object, secret_key: str, secret: object, wrappers: list[str | None]
    ) -> None:
        planted: object = {secret_key: secret}
        for wrapper in wrappers:
            planted = [planted] if wrapper is None else {wrapper: planted}

        scrubbed = scrub_structured({"tree": tree, "planted": planted})

        masked = _sensitive_values(scrubbed)
        assert masked
        assert all(item == REDACTED_VALUE for item in masked)
