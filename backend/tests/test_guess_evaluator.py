"""Guess evaluation and text rendering tests"""
import pytest

from app.services.guess_evaluator import (
    LetterStatus, NOTIFICATION_GLYPHS, SHARE_GLYPHS, evaluate_guess,
    format_time_to_complete, notification_grid, render_grid, result_header, share_text
)

C = LetterStatus.CORRECT
P = LetterStatus.PRESENT
A = LetterStatus.ABSENT


@pytest.mark.critical
class TestEvaluateGuess:
    """Two-pass evaluation with the duplicate-letter rule"""

    def test_exact_match_is_all_correct(self):
        assert evaluate_guess("CRANE", "CRANE") == [C, C, C, C, C]

    def test_no_shared_letters_is_all_absent(self):
        assert evaluate_guess("BUMPY", "CRANE") == [A, A, A, A, A]

    def test_duplicate_guess_letters_capped_by_target(self):
        """SPEED against ERASE: both E's fit the two E's of the target, D does not"""
        assert evaluate_guess("SPEED", "ERASE") == [P, A, P, P, A]

    def test_extra_duplicate_is_absent(self):
        """Only one L and one A in the target, so the extra copies are absent"""
        assert evaluate_guess("LLAMA", "PLANT") == [A, C, C, A, A]
        assert evaluate_guess("HOTEL", "LEVEL") == [A, A, A, C, C]

    def test_correct_letter_consumed_before_present(self):
        """An exact match takes its target letter before any present match is looked for"""
        assert evaluate_guess("EERIE", "THEME") == [P, A, A, A, C]

    def test_case_insensitive(self):
        assert evaluate_guess("crane", "CRANE") == evaluate_guess("CRANE", "crane")

    def test_length_mismatch_raises(self):
        with pytest.raises(ValueError):
            evaluate_guess("CRAN", "CRANE")

    @pytest.mark.parametrize("guess,target", [
        ("SPEED", "ERASE"),
        ("ALLEE", "LAPEL"),
        ("EEEEE", "GREET"),
        ("ABBEY", "BABES"),
    ])
    def test_status_counts_respect_target_letters(self, guess, target):
        statuses = evaluate_guess(guess, target)
        correct = sum(1 for g, t in zip(guess, target) if g == t)
        assert statuses.count(C) == correct
        for letter in set(guess):
            matched = sum(
                1 for i, g in enumerate(guess)
                if g == letter and statuses[i] in (C, P)
            )
            assert matched <= target.count(letter)


@pytest.mark.high
class TestRendering:
    """Emoji grids, share text and time formatting"""

    def test_render_grid_uses_share_glyphs(self):
        assert render_grid([[C, P, A, A, C]]) == "🟩🟨⬛⬛🟩"

    def test_notification_grid_uses_white_squares(self):
        grid = notification_grid(["SPEED", "ERASE"], "ERASE")
        assert grid == "🟨⬜🟨🟨⬜\n🟩🟩🟩🟩🟩"
        assert NOTIFICATION_GLYPHS[A] != SHARE_GLYPHS[A]

    def test_result_header(self):
        assert result_header(12, True, 3, "Wordle") == "Wordle #12 3/6"
        assert result_header(12, False, 6, "Wordle") == "Wordle #12 X/6"

    def test_share_text_layout(self):
        text = share_text(["CRANE", "ERASE"], "ERASE", 7, True, 2, "Wordle", "https://example.test/wordle")
        assert text.split("\n") == [
            "Wordle #7 2/6",
            "",
            "⬛🟩🟩⬛🟩",
            "🟩🟩🟩🟩🟩",
            "",
            "🎮 https://example.test/wordle",
        ]

    def test_share_text_without_guesses(self):
        text = share_text([], "ERASE", 7, False, 0, "Wordle", "https://example.test")
        assert text == "Wordle #7 X/6\n\n\n🎮 https://example.test"

    @pytest.mark.parametrize("milliseconds,expected", [
        (None, "0:00"),
        (0, "0:00"),
        (999, "0:00"),
        (65000, "1:05"),
        (754321, "12:34"),
    ])
    def test_format_time_to_complete(self, milliseconds, expected):
        assert format_time_to_complete(milliseconds) == expected
