import pytest

from diffmod.config import DiffAlgorithm, DiffOptions
from diffmod.engine.apply import apply_body
from diffmod.engine.differ import diff_file, diff_lines, edit_script, reduce_changes
from diffmod.engine.hunks import Origin
from diffmod.engine.model import Line, LineTag
from diffmod.engine.names import FileName
from diffmod.errors import ParseError

ALGORITHMS = [DiffAlgorithm.MYERS, DiffAlgorithm.HISTOGRAM]


def _numbered(count: int, changed: dict[int, str] | None = None) -> bytes:
    changed = changed or {}
    return "".join(f"{changed.get(n, f'line {n}')}\n" for n in range(1, count + 1)).encode()


def _diff(buffer, old: bytes, new: bytes, options: DiffOptions | None = None, algorithm=None):
    return diff_file(
        buffer,
        buffer.insert(b"a/f.txt"),
        buffer.insert(b"b/f.txt"),
        buffer.insert(old),
        buffer.insert(new),
        options,
        algorithm,
    )


def _contents(buffer, file) -> list[tuple[LineTag, bytes]]:
    return [(line.tag, buffer.slice(line.text)) for hunk in file.hunks for line in hunk.lines]


CASES = [
    (b"a\nb\nc\n", b"a\nB\nc\n"),
    (b"", b"one\ntwo\n"),
    (b"one\ntwo\n", b""),
    (b"x\ny", b"x\ny\n"),
    (b"x\ny\n", b"x\nz"),
    (b"a\nb\nc\nd\ne\n", b"e\nd\nc\nb\na\n"),
    (b"x\ny\n" * 40, b"y\nx\n" * 40),
    (b"x\n" * 70 + b"y\n" * 70, b"y\n" * 70 + b"x\n" * 70),
    (_numbered(30), _numbered(30, {3: "three", 17: "seventeen", 29: "twenty-nine"})),
    (b"}\n}\nfoo\n}\n", b"}\nbar\n}\nfoo\n}\n}\n"),
]


@pytest.mark.parametrize("algorithm", ALGORITHMS)
@pytest.mark.parametrize(("old", "new"), CASES)
def test_applying_the_diff_yields_the_new_body(buffer, algorithm, old: bytes, new: bytes) -> None:
    file = _diff(buffer, old, new, algorithm=algorithm)

    assert apply_body(file, buffer, old) == new


@pytest.mark.parametrize("algorithm", ALGORITHMS)
def test_equal_bodies_have_no_hunks(buffer, algorithm) -> None:
    file = _diff(buffer, b"same\ncontent\n", b"same\ncontent\n", algorithm=algorithm)

    assert file.hunks == ()
    assert not file.binary
    assert file.old_name == FileName.named(b"f.txt")


def test_binary_content(buffer) -> None:
    changed = _diff(buffer, b"\x00\x01abc", b"\x00\x01abd")
    same = _diff(buffer, b"\x00\x01abc", b"\x00\x01abc")

    assert changed.binary and changed.hunks == ()
    assert not same.binary and same.hunks == ()


def test_missing_side_must_be_empty(buffer) -> None:
    with pytest.raises(ParseError, match="old side is missing"):
        diff_file(buffer, None, buffer.insert(b"b/f.txt"), buffer.insert(b"x\n"), buffer.insert(b"y\n"))


def test_added_file_from_missing_side(buffer) -> None:
    file = diff_file(buffer, None, buffer.insert(b"b/new.txt"), buffer.insert(b""), buffer.insert(b"hi\n"))

    assert file.is_added
    (hunk,) = file.hunks
    assert (hunk.old_start, hunk.old_count, hunk.new_start, hunk.new_count) == (0, 0, 1, 1)


def test_changes_within_twice_the_context_share_a_hunk(buffer) -> None:
    old = _numbered(20)

    merged = _diff(buffer, old, _numbered(20, {5: "five", 12: "twelve"}))
    split = _diff(buffer, old, _numbered(20, {5: "five", 13: "thirteen"}))

    (hunk,) = merged.hunks
    assert (hunk.old_start, hunk.old_count) == (2, 14)
    assert [(h.old_start, h.old_count) for h in split.hunks] == [(2, 7), (10, 7)]


def test_context_lines_option(buffer) -> None:
    file = _diff(buffer, _numbered(10), _numbered(10, {5: "five"}), DiffOptions(context_lines=0))

    (hunk,) = file.hunks
    assert (hunk.old_start, hunk.old_count, hunk.new_start, hunk.new_count) == (5, 1, 5, 1)
    assert [line.tag for line in hunk.lines] == [LineTag.REMOVED, LineTag.ADDED]


def test_missing_final_newline_is_a_change(buffer) -> None:
    file = _diff(buffer, b"x\ny", b"x\ny\n")

    lines = file.hunks[0].lines
    assert [(line.tag, line.no_newline) for line in lines[-2:]] == [
        (LineTag.REMOVED, True),
        (LineTag.ADDED, False),
    ]


@pytest.mark.parametrize("algorithm", ALGORITHMS)
def test_output_is_deterministic(buffer, algorithm) -> None:
    old, new = CASES[5]

    first = _diff(buffer, old, new, algorithm=algorithm)
    second = _diff(buffer, old, new, algorithm=algorithm)

    assert _contents(buffer, first) == _contents(buffer, second)


def test_removals_come_before_additions() -> None:
    assert edit_script([1], [2], DiffAlgorithm.MYERS) == [(LineTag.REMOVED, 0, -1), (LineTag.ADDED, -1, 0)]
    assert edit_script([1, 2, 3], [1, 3], DiffAlgorithm.MYERS) == [
        (LineTag.CONTEXT, 0, 0),
        (LineTag.REMOVED, 1, -1),
        (LineTag.CONTEXT, 2, 1),
    ]


def test_histogram_anchors_on_unique_lines() -> None:
    ops = edit_script([1, 9, 2, 2], [2, 2, 9, 1], DiffAlgorithm.HISTOGRAM)

    assert (LineTag.CONTEXT, 1, 2) in ops
    kept = [op for op in ops if op[0] is LineTag.CONTEXT]
    assert len(kept) == 1


def test_diff_lines_ignores_input_tags(buffer) -> None:
    old = [Line(LineTag.ADDED, buffer.insert(b"a")), Line(LineTag.REMOVED, buffer.insert(b"b"))]
    new = [Line(LineTag.CONTEXT, buffer.insert(b"a")), Line(LineTag.CONTEXT, buffer.insert(b"c"))]

    lines = diff_lines(buffer, old, new)

    assert [(line.tag, buffer.slice(line.text)) for line in lines] == [
        (LineTag.CONTEXT, b"a"),
        (LineTag.REMOVED, b"b"),
        (LineTag.ADDED, b"c"),
    ]


def test_reduce_changes_turns_pairs_into_context(buffer) -> None:
    lines = [
        Line(LineTag.REMOVED, buffer.insert(b"a")),
        Line(LineTag.REMOVED, buffer.insert(b"b")),
        Line(LineTag.ADDED, buffer.insert(b"a")),
        Line(LineTag.ADDED, buffer.insert(b"c")),
    ]
    origins = [Origin.FIRST, Origin.FIRST, Origin.SECOND, Origin.SECOND]

    reduced, reduced_origins = reduce_changes(lines, buffer, origins=origins)

    assert [(line.tag, buffer.slice(line.text)) for line in reduced] == [
        (LineTag.CONTEXT, b"a"),
        (LineTag.REMOVED, b"b"),
        (LineTag.ADDED, b"c"),
    ]
    assert reduced_origins == [None, Origin.FIRST, Origin.SECOND]


def test_reduce_changes_leaves_one_sided_runs(buffer) -> None:
    lines = [Line(LineTag.CONTEXT, buffer.insert(b"k")), Line(LineTag.ADDED, buffer.insert(b"k"))]

    reduced, origins = reduce_changes(lines, buffer)

    assert reduced == lines
    assert origins is None
