import pytest

from catalog.utils.labels import extract_main_label, matches_label, normalize_label


@pytest.mark.unit
def test_normalize_label_strips_case_accents_and_punctuation():
    assert normalize_label("  Dále   Play, Récords! ") == "dale play records"
    assert normalize_label(None) == ""


@pytest.mark.unit
@pytest.mark.parametrize(
    "label",
    [
        "Dale Play Records",
        "DALE PLAY RECORDS",
        "DalePlay Records",
        "Dale Play Records / Sony Music Argentina",
        "Dale Play Records (Under exclusive license to Sony Music)",
    ],
)
def test_known_variants_match(label):
    assert matches_label(label, "dale play records")


@pytest.mark.unit
@pytest.mark.parametrize("label", ["Sony Music", "Warner Records", "", None])
def test_other_labels_do_not_match(label):
    assert not matches_label(label, "dale play records")


@pytest.mark.unit
def test_blank_search_term_never_matches():
    assert not matches_label("Dale Play Records", "  ")


@pytest.mark.unit
def test_extract_main_label():
    assert extract_main_label("Dale Play Records / Sony Music") == "Dale Play Records"
    assert extract_main_label("Dale Play Records (c) 2020") == "Dale Play Records"
    assert extract_main_label(None) == ""
