"""Tests for the slug codec."""

import pytest

from taxoslug.core.slugs import (
    is_valid_slug,
    normalize_slug,
    to_name,
    to_slug,
    validate_slug,
)

TAXONOMY_NAMES = [
    "Internal Medicine",
    "Obstetrics & Gynecology",
    "Emergency Medicine",
    "Pediatrics",
    "Psychiatry",
    "Family Medicine / Primary Care",
    "Ear, Nose, and Throat",
    "General Surgery",
    "Physical Medicine & Rehabilitation",
]


class TestToSlug:
    """Tests for name -> slug conversion."""

    def test_simple_name(self) -> None:
        """Spaces become underscores and case is folded."""
        assert to_slug("Internal Medicine") == "internal_medicine"

    def test_ampersand_is_a_separator(self) -> None:
        """A spaced ampersand collapses into one underscore."""
        assert to_slug("Obstetrics & Gynecology") == "obstetrics_gynecology"

    def test_slash_and_comma_are_separators(self) -> None:
        """Slashes and commas collapse like whitespace."""
        assert to_slug("Family Medicine / Primary Care") == "family_medicine_primary_care"
        assert to_slug("Ear, Nose, and Throat") == "ear_nose_and_throat"

    def test_strips_disallowed_characters(self) -> None:
        """Punctuation outside [a-z0-9_-] is removed."""
        assert to_slug("Women's Health (Adult)") == "womens_health_adult"

    def test_keeps_hyphens(self) -> None:
        """Hyphens are allowed slug characters."""
        assert to_slug("Ear-Nose-Throat") == "ear-nose-throat"

    def test_trims_edge_separators(self) -> None:
        """Leading and trailing separators are dropped."""
        assert to_slug("  & Cardiology &  ") == "cardiology"

    @pytest.mark.parametrize("value", ["", None, 42, ["Internal Medicine"]])
    def test_degenerate_input(self, value: object) -> None:
        """Non-string or empty input yields an empty slug."""
        assert to_slug(value) == ""


class TestToName:
    """Tests for slug -> name conversion."""

    def test_simple_slug(self) -> None:
        """Underscores become spaces and words are title-cased."""
        assert to_name("internal_medicine") == "Internal Medicine"

    def test_hyphens_become_spaces(self) -> None:
        """Hyphens are separators too."""
        assert to_name("ear-nose-throat") == "Ear Nose Throat"

    def test_lowercases_word_tails(self) -> None:
        """Only the first character of each word is uppercase."""
        assert to_name("ICU_CARE") == "Icu Care"

    def test_collapses_separator_runs(self) -> None:
        """Repeated separators produce a single space."""
        assert to_name("__general__surgery__") == "General Surgery"

    @pytest.mark.parametrize("value", ["", None, 3.5])
    def test_degenerate_input(self, value: object) -> None:
        """Non-string or empty input yields an empty name."""
        assert to_name(value) == ""


class TestRoundTrip:
    """Tests for the documented round-trip behaviour."""

    @pytest.mark.parametrize("name", TAXONOMY_NAMES)
    def test_slug_is_stable_through_name(self, name: str) -> None:
        """Slugging the derived display name gives the same slug."""
        slug = to_slug(name)
        assert to_slug(to_name(slug)) == slug

    @pytest.mark.parametrize("name", TAXONOMY_NAMES)
    def test_slugs_are_valid(self, name: str) -> None:
        """Slugs of realistic names pass validation."""
        assert is_valid_slug(to_slug(name))

    def test_hyphenated_names_do_not_round_trip(self) -> None:
        """Hyphens come back as underscores after a name round trip."""
        slug = to_slug("Ear-Nose-Throat")
        assert slug == "ear-nose-throat"
        assert to_slug(to_name(slug)) == "ear_nose_throat"

    def test_display_name_is_not_recovered(self) -> None:
        """Punctuation lost by to_slug is not restored by to_name."""
        assert to_name(to_slug("Obstetrics & Gynecology")) == "Obstetrics Gynecology"

    @pytest.mark.parametrize("name", ["-a", "a-", "a--b", "a-_b", "Cardiology - Adult"])
    def test_hyphen_edges_and_runs_produce_invalid_slugs(self, name: str) -> None:
        """Hyphens are kept verbatim, so some names slug to invalid slugs."""
        slug = to_slug(name)
        assert "-" in slug
        assert not is_valid_slug(slug)


class TestValidation:
    """Tests for slug validation and normalization."""

    @pytest.mark.parametrize("slug", ["internal_medicine", "ent", "ear-nose-throat", "covid19"])
    def test_valid_slugs(self, slug: str) -> None:
        """Well-formed slugs are accepted."""
        assert is_valid_slug(slug)

    @pytest.mark.parametrize(
        "slug",
        ["", "   ", "Internal_Medicine", "internal medicine", "_cardiology", "cardiology-",
         "internal__medicine", "internal_-medicine", None],
    )
    def test_invalid_slugs(self, slug: object) -> None:
        """Malformed slugs are rejected."""
        assert not is_valid_slug(slug)

    def test_surrounding_whitespace_is_ignored(self) -> None:
        """Validation applies to the trimmed slug."""
        assert is_valid_slug("  cardiology  ")

    def test_validation_reasons(self) -> None:
        """Each rejection explains itself."""
        assert validate_slug(None).error == "No specialty parameter provided"
        assert validate_slug("  ").error == "Empty specialty parameter"
        assert "invalid characters" in (validate_slug("Bad Slug").error or "")
        assert "starts or ends" in (validate_slug("-bad").error or "")
        assert "consecutive" in (validate_slug("bad__slug").error or "")
        assert validate_slug("good_slug").is_valid

    def test_normalize_folds_separators(self) -> None:
        """Separator runs become one underscore and edges are trimmed."""
        assert normalize_slug("--Internal-_Medicine__") == "internal_medicine"

    def test_normalize_degenerate_input(self) -> None:
        """Non-string input normalizes to an empty slug."""
        assert normalize_slug(None) == ""
        assert normalize_slug("") == ""
