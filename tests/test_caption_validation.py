# tests/test_caption_validation.py
import pytest

from comic_captions.features.captions.schemas import ENGLISH, CaptionRules, PanelCaptions, PanelId
from comic_captions.features.captions.validation import normalize_caption, validate_all, validate_caption

from conftest import VALID_HE


def _codes(result):
    # "Panel A: too long (70 > 65 chars)" -> "too long"
    return [e.split(": ", 1)[1].split(" (")[0] for e in result.errors]


@pytest.mark.parametrize("pid", list("ABCD"))
def test_valid_hebrew_captions_pass(pid):
    res = validate_caption(VALID_HE[pid], pid)
    assert res.valid
    assert res.errors == []


def test_empty_caption_reports_empty_and_word_count():
    res = validate_caption("   ", PanelId.B)
    assert not res.valid
    assert _codes(res) == ["empty", "too few words"]
    assert all(e.startswith("Panel B: ") for e in res.errors)


def test_latin_letters_are_non_native():
    res = validate_caption("הילד הקטן רץ אל הגן Hello", "A")
    assert "non-native characters" in _codes(res)


def test_digits_are_non_native():
    res = validate_caption("הילד הקטן רץ 3 פעמים לגן", "A")
    assert "non-native characters" in _codes(res)


def test_hebrew_punctuation_and_quotes_allowed():
    res = validate_caption('הילד אמר "שלום" לחבר הטוב שלו!', "C")
    assert res.valid, res.errors


def test_multiline_rejected():
    res = validate_caption("הילד הקטן רץ\nמהר אל הגן הירוק", "A")
    assert "multiline" in _codes(res)


def test_too_long_and_too_many_words():
    caption = "ABC " + "word " * 20
    res = validate_caption(caption, "A")
    codes = _codes(res)
    assert "too long" in codes
    assert "too many words" in codes


def test_too_few_words():
    res = validate_caption("הילד רץ", "D")
    assert _codes(res) == ["too few words"]


def test_forbidden_start_and_end():
    res = validate_caption("אבל הילד הקטן רץ אל הגן כי", "A")
    codes = _codes(res)
    assert "forbidden start" in codes
    assert "forbidden end" in codes


def test_connector_with_trailing_punctuation_is_still_forbidden():
    res = validate_caption("הילד הקטן רץ מהר אל הגן גם.", "A")
    assert "forbidden end" in _codes(res)


def test_dangling_punctuation_start():
    res = validate_caption("- הילד הקטן רץ מהר אל הגן", "A")
    assert "dangling punctuation start" in _codes(res)


def test_errors_keep_rule_order():
    res = validate_caption("אבל hello", "A")
    assert _codes(res) == ["non-native characters", "too few words", "forbidden start"]


def test_rules_object_drives_limits():
    lenient = CaptionRules.preset("lenient")
    assert validate_caption("הילד רץ אל הגן", "A", rules=lenient).valid
    assert not validate_caption("הילד רץ אל הגן", "A").valid


def test_unknown_preset_raises():
    with pytest.raises(ValueError):
        CaptionRules.preset("loose")


def test_english_profile():
    res = validate_caption("The little dog runs to the park", "A", language=ENGLISH)
    assert res.valid, res.errors
    res = validate_caption("And the little dog runs home", "A", language=ENGLISH)
    assert "forbidden start" in _codes(res)


def test_validate_all_aggregates_every_panel():
    caps = PanelCaptions(A=VALID_HE["A"], B="", C=VALID_HE["C"], D="hello")
    res = validate_all(caps)
    assert not res.valid
    assert any(e.startswith("Panel B: ") for e in res.errors)
    assert any(e.startswith("Panel D: ") for e in res.errors)
    assert not any(e.startswith("Panel A: ") for e in res.errors)


def test_validate_all_valid():
    assert validate_all(PanelCaptions(**VALID_HE)).valid


# -------- normalizer --------

def test_normalize_collapses_whitespace_and_punctuation_runs():
    assert normalize_caption("  הילד   רץ\n\nמהר...  !!! ??  ") == "הילד רץ מהר… ! ?"


def test_normalize_hard_caps_without_ellipsis():
    text = "מילה " * 30
    out = normalize_caption(text, max_chars=20)
    assert len(out) <= 20
    assert not out.endswith("…")
    assert out == out.rstrip()


def test_normalize_is_idempotent():
    for text in ["  שלום   עולם..  ", "ABC " + "word " * 20, "", "!!!???...", "a\tb\nc"]:
        once = normalize_caption(text)
        assert normalize_caption(once) == once


def test_normalized_long_caption_fits_length_cap():
    out = normalize_caption("ABC " + "word " * 20)
    assert len(out) <= CaptionRules().max_chars
    assert "too long" not in _codes(validate_caption(out, "A"))
