import pytest

from fiasco.exceptions import DescriptorParseError
from fiasco.schemas import ArtifactDescriptor, ArtifactType, descriptor, descriptors


def test_parse_full_literal() -> None:
    parsed = ArtifactDescriptor.parse("library:com.example:core:1.0")
    assert parsed.type == ArtifactType.LIBRARY
    assert parsed.group == "com.example"
    assert parsed.name == "core"
    assert parsed.version == "1.0"
    assert parsed.is_complete()
    assert parsed.to_literal() == "library:com.example:core:1.0"


def test_short_form_leaves_type_absent() -> None:
    parsed = descriptor("com.example:core:1.0")
    assert parsed.type is None
    assert parsed.to_literal() == ":com.example:core:1.0"
    assert not parsed.is_complete()
    assert ArtifactDescriptor.parse(parsed.to_literal()) == parsed


@pytest.mark.parametrize(
    "literal",
    ["library:com.example:core:1.0", "asset:org.site:logo:2.1.3", ":g::", "library:::", "::core:"],
)
def test_literal_round_trip(literal: str) -> None:
    assert ArtifactDescriptor.query_of(literal).to_literal() == literal


@pytest.mark.parametrize(
    "literal, fragment",
    [
        ("core", "expected type:group:name:version"),
        ("a:b:c:d:e", "expected type:group:name:version"),
        ("jar:g:n:1", "unknown artifact type"),
        ("library::core:1.0", "group is required"),
        ("library:g::1.0", "artifact name is required"),
        ("library:g:co re:1.0", "illegal characters"),
    ],
)
def test_malformed_literals_are_rejected(literal: str, fragment: str) -> None:
    with pytest.raises(DescriptorParseError) as excinfo:
        ArtifactDescriptor.parse(literal)
    assert fragment in str(excinfo.value)
    assert excinfo.value.text == literal


def test_query_allows_missing_group_and_name() -> None:
    query = ArtifactDescriptor.query_of(":g::")
    assert query.group == "g"
    assert query.type is None and query.name is None and query.version is None


def test_wildcard_matching() -> None:
    query = ArtifactDescriptor.query_of(":g::")
    assert query.matches(descriptor("library:g:a:1"))
    assert query.matches(descriptor("asset:g:b:2"))
    assert not query.matches(descriptor("library:h:a:1"))
    assert ArtifactDescriptor.query_of("library:g:a:").matches(descriptor("library:g:a:9"))
    assert not ArtifactDescriptor.query_of("asset:g:a:").matches(descriptor("library:g:a:9"))


def test_descriptors_sort_by_type_group_name_version() -> None:
    unsorted = descriptors("library:g:b:1", "library:g:a:2", "library:g:a:1", "asset:z:z:1")
    assert [d.to_literal() for d in sorted(unsorted)] == [
        "asset:z:z:1",
        "library:g:a:1",
        "library:g:a:2",
        "library:g:b:1",
    ]


def test_with_helpers_return_new_values() -> None:
    original = descriptor("library:g:a:1")
    changed = original.with_version("2").with_group("h")
    assert original.to_literal() == "library:g:a:1"
    assert changed.to_literal() == "library:h:a:2"
    assert original.without_version().version is None
    assert hash(original) == hash(descriptor("library:g:a:1"))


def test_coerce_accepts_descriptors_literals_and_artifacts() -> None:
    from fiasco.schemas import Library

    parsed = descriptor("library:g:a:1")
    assert ArtifactDescriptor.coerce(parsed) is parsed
    assert ArtifactDescriptor.coerce("library:g:a:1") == parsed
    assert ArtifactDescriptor.coerce(Library(parsed)) == parsed
    with pytest.raises(TypeError):
        ArtifactDescriptor.coerce(42)


def test_maven_coordinates() -> None:
    parsed = descriptor("library:org.apache.ant:ant:1.10")
    assert parsed.maven_name() == "org.apache.ant:ant:1.10"
    assert parsed.group_path() == "org/apache/ant"
    assert parsed.group_and_name() == "org.apache.ant:ant"
