"""Guess evaluation and the text renderings derived from it

Duplicate letters follow the usual Wordle rule: exact matches are settled
first, then each remaining guess letter claims the leftmost unclaimed
occurrence of itself in the target.
"""
from enum import Enum
from typing import List, Optional, Sequence


class LetterStatus(str, Enum):
    CORRECT = "correct"
    PRESENT = "present"
    ABSENT = "absent"


SHARE_GLYPHS = {
    LetterStatus.CORRECT: "🟩",
    LetterStatus.PRESENT: "🟨",
    LetterStatus.ABSENT: "⬛",
}

# Discord renders a white square more legibly than a black one
NOTIFICATION_GLYPHS = {**SHARE_GLYPHS, LetterStatus.ABSENT: "⬜"}

MAX_ATTEMPTS = 6


def evaluate_guess(guess: str, target: str) -> List[LetterStatus]:
    """Classify each letter of guess against target"""
    guess = guess.upper()
    target = target.upper()
    if len(guess) != len(target):
        raise ValueError(f"Guess length {len(guess)} does not match target length {len(target)}")

    statuses = [LetterStatus.ABSENT] * len(guess)
    consumed = [False] * len(target)

    for i, letter in enumerate(guess):
        if letter == target[i]:
            statuses[i] = LetterStatus.CORRECT
            consumed[i] = True

    for i, letter in enumerate(guess):
        if statuses[i] is LetterStatus.CORRECT:
            continue
        for j, target_letter in enumerate(target):
            if not consumed[j] and target_letter == letter:
                statuses[i] = LetterStatus.PRESENT
                consumed[j] = True
                break

    return statuses


def evaluate_guesses(guesses: Sequence[str], target: str) -> List[List[LetterStatus]]:
    return [evaluate_guess(guess, target) for guess in guesses]


def render_grid(rows: Sequence[Sequence[LetterStatus]], glyphs: dict = None) -> str:
    """One line of glyphs per guess, in submission order"""
    glyphs = glyphs or SHARE_GLYPHS
    return "\n".join("".join(glyphs[status] for status in row) for row in rows)


def result_header(word_id: int, solved: bool, attempts: int, title: str) -> str:
    score = attempts if solved else "X"
    return f"{title} #{word_id} {score}/{MAX_ATTEMPTS}"


def share_text(
    guesses: Sequence[str],
    target: str,
    word_id: int,
    solved: bool,
    attempts: int,
    title: str,
    url: str,
) -> str:
    """Spoiler-free result text players paste into chat"""
    grid = render_grid(evaluate_guesses(guesses, target), SHARE_GLYPHS)
    lines = [result_header(word_id, solved, attempts, title), ""]
    if grid:
        lines.append(grid)
    lines.extend(["", f"🎮 {url}"])
    return "\n".join(lines)


def notification_grid(guesses: Sequence[str], target: str) -> str:
    return render_grid(evaluate_guesses(guesses, target), NOTIFICATION_GLYPHS)


def format_time_to_complete(milliseconds: Optional[int]) -> str:
    """Milliseconds as M:SS, "0:00" when unknown"""
    if not milliseconds:
        return "0:00"
    seconds = int(milliseconds) // 1000
    return f"{seconds // 60}:{seconds % 60:02d}"
