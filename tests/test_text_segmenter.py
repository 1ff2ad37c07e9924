import pytest

from gaka_backend.services.tts import SentenceSegmenter


def segment(tokens: list[str]) -> list[str]:
    segmenter = SentenceSegmenter()
    units = [unit for token in tokens if (unit := segmenter.accept(token)) is not None]
    final = segmenter.flush()
    if final is not None:
        units.append(final)
    return units


def test_emits_unit_when_token_closes_sentence() -> None:
    tokens = ["Hello", " world", "!", " How", " are", " you", "?"]

    assert segment(tokens) == ["Hello world!", " How are you?"]


def test_flush_emits_trailing_text_without_boundary() -> None:
    assert segment(["No punctuation here"]) == ["No punctuation here"]
    assert segment(["Hi", " there"]) == ["Hi there"]


def test_token_with_several_boundaries_stays_one_unit() -> None:
    assert segment(["Hi! Bye.", " Next"]) == ["Hi! Bye.", " Next"]


def test_newline_is_a_boundary() -> None:
    assert segment(["First line\n", "second"]) == ["First line\n", "second"]


def test_whitespace_remainder_is_dropped() -> None:
    segmenter = SentenceSegmenter()

    assert segmenter.accept("Done.") == "Done."
    assert segmenter.accept("  ") is None
    assert segmenter.accept("\t") is None
    assert segmenter.flush() is None
    assert segmenter.buffer_size == 0
    assert segmenter.units_emitted == 1


def test_empty_tokens_are_ignored() -> None:
    segmenter = SentenceSegmenter()

    assert segmenter.accept("") is None
    assert segmenter.flush() is None
    assert segmenter.units_emitted == 0


def test_buffer_size_tracks_pending_characters() -> None:
    segmenter = SentenceSegmenter()
    segmenter.accept("abc")
    segmenter.accept("de")

    assert segmenter.buffer_size == 5

    segmenter.reset()
    assert segmenter.buffer_size == 0
    assert segmenter.flush() is None


@pytest.mark.parametrize(
    "tokens",
    [
        ["Hello", " world", "!", " How", " are", " you", "?"],
        ["One. Two", " three", "?", "\n", "tail"],
        ["a", "b", "c"],
        ["...", "!", "?"],
        ["Ends with text. ", "and more"],
    ],
)
def test_units_concatenate_to_input_text(tokens: list[str]) -> None:
    assert "".join(segment(tokens)) == "".join(tokens)
