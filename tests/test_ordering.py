from itertools import permutations
from uuid import uuid4

import pytest

from coursemart.exceptions import ConflictError, NotFoundError, ValidationError
from coursemart.models import Course, CourseSection, Lesson
from coursemart.ordering.service import OrderedCollectionManager


@pytest.fixture
def sections(session_factory) -> OrderedCollectionManager:
    return OrderedCollectionManager(
        session_factory, CourseSection, parent_model=Course, parent_key="course_id", label="Section"
    )


@pytest.fixture
def lessons(session_factory) -> OrderedCollectionManager:
    return OrderedCollectionManager(
        session_factory, Lesson, parent_model=CourseSection, parent_key="section_id", label="Lesson"
    )


async def _orders(manager: OrderedCollectionManager, parent_id) -> dict:
    return {row.name: row.sort_order for row in await manager.siblings(parent_id)}


@pytest.mark.asyncio
async def test_insert_at_end_appends_from_zero(sections, seed) -> None:
    course = await seed.course()
    first = await sections.insert_at_end(course.course_id, name="Intro")
    second = await sections.insert_at_end(course.course_id, name="Basics")
    third = await sections.insert_at_end(course.course_id, name="Advanced")
    assert [first.sort_order, second.sort_order, third.sort_order] == [0, 1, 2]


@pytest.mark.asyncio
async def test_next_order_is_zero_for_empty_parent(sections, seed, session_factory) -> None:
    course = await seed.course()
    async with session_factory() as session:
        assert await sections.next_order(session, course.course_id) == 0


@pytest.mark.asyncio
async def test_insert_at_end_unknown_parent(sections) -> None:
    with pytest.raises(NotFoundError):
        await sections.insert_at_end(uuid4(), name="Orphan")


@pytest.mark.asyncio
async def test_reorder_matches_every_permutation(sections, seed) -> None:
    course = await seed.course()
    rows = [await seed.section(course.course_id, i, name=n) for i, n in enumerate("ABC")]
    by_name = {r.name: r.section_id for r in rows}

    for perm in permutations("ABC"):
        await sections.reorder(course.course_id, [by_name[n] for n in perm])
        assert await _orders(sections, course.course_id) == {n: i for i, n in enumerate(perm)}


@pytest.mark.asyncio
async def test_reorder_scenario_c_a_b(sections, seed) -> None:
    course = await seed.course()
    a = await seed.section(course.course_id, 0, name="A")
    b = await seed.section(course.course_id, 1, name="B")
    c = await seed.section(course.course_id, 2, name="C")

    result = await sections.reorder(course.course_id, [c.section_id, a.section_id, b.section_id])

    assert [r.name for r in result] == ["C", "A", "B"]
    assert await _orders(sections, course.course_id) == {"C": 0, "A": 1, "B": 2}


@pytest.mark.asyncio
async def test_reorder_missing_id_changes_nothing(sections, seed) -> None:
    course = await seed.course()
    a = await seed.section(course.course_id, 0, name="A")
    b = await seed.section(course.course_id, 1, name="B")
    await seed.section(course.course_id, 2, name="C")

    with pytest.raises(ValidationError, match="missing"):
        await sections.reorder(course.course_id, [b.section_id, a.section_id])

    assert await _orders(sections, course.course_id) == {"A": 0, "B": 1, "C": 2}


@pytest.mark.asyncio
async def test_reorder_rejects_other_parents_child(sections, seed) -> None:
    course = await seed.course()
    other = await seed.course(name="Other")
    a = await seed.section(course.course_id, 0, name="A")
    foreign = await seed.section(other.course_id, 0, name="X")

    with pytest.raises(ValidationError, match="not children"):
        await sections.reorder(course.course_id, [a.section_id, foreign.section_id])

    assert await _orders(sections, course.course_id) == {"A": 0}
    assert await _orders(sections, other.course_id) == {"X": 0}


@pytest.mark.asyncio
async def test_reorder_rejects_duplicates(sections, seed) -> None:
    course = await seed.course()
    a = await seed.section(course.course_id, 0, name="A")
    await seed.section(course.course_id, 1, name="B")

    with pytest.raises(ValidationError, match="duplicate"):
        await sections.reorder(course.course_id, [a.section_id, a.section_id])


@pytest.mark.asyncio
async def test_reorder_empty_list_on_empty_parent_is_noop(sections, seed) -> None:
    course = await seed.course()
    assert await sections.reorder(course.course_id, []) == []


@pytest.mark.asyncio
async def test_reorder_unknown_parent(sections) -> None:
    with pytest.raises(NotFoundError):
        await sections.reorder(uuid4(), [])


@pytest.mark.asyncio
async def test_reorder_children_resolves_parent(lessons, seed) -> None:
    course = await seed.course()
    section = await seed.section(course.course_id, 0)
    one = await seed.lesson(section.section_id, 0, name="one")
    two = await seed.lesson(section.section_id, 1, name="two")

    await lessons.reorder_children([two.lesson_id, one.lesson_id])

    assert await _orders(lessons, section.section_id) == {"two": 0, "one": 1}


@pytest.mark.asyncio
async def test_reorder_children_spanning_parents_is_rejected(lessons, seed) -> None:
    course = await seed.course()
    s1 = await seed.section(course.course_id, 0)
    s2 = await seed.section(course.course_id, 1)
    one = await seed.lesson(s1.section_id, 0, name="one")
    two = await seed.lesson(s2.section_id, 0, name="two")

    with pytest.raises(ValidationError, match="more than one parent"):
        await lessons.reorder_children([two.lesson_id, one.lesson_id])

    assert await _orders(lessons, s1.section_id) == {"one": 0}
    assert await _orders(lessons, s2.section_id) == {"two": 0}


@pytest.mark.asyncio
async def test_reorder_children_empty_or_unknown(lessons) -> None:
    with pytest.raises(ValidationError):
        await lessons.reorder_children([])
    with pytest.raises(ValidationError):
        await lessons.reorder_children([uuid4()])


@pytest.mark.asyncio
async def test_insert_at_end_retries_after_losing_position_race(sections, seed, monkeypatch) -> None:
    course = await seed.course()
    await seed.section(course.course_id, 0, name="A")

    real_next_order = sections.next_order
    calls = []

    async def stale_then_real(session, parent_id):
        calls.append(parent_id)
        if len(calls) == 1:
            # What a concurrent writer would have read before A was committed
            return 0
        return await real_next_order(session, parent_id)

    monkeypatch.setattr(sections, "next_order", stale_then_real)

    row = await sections.insert_at_end(course.course_id, name="B")

    assert len(calls) == 2
    assert row.sort_order == 1
    assert await _orders(sections, course.course_id) == {"A": 0, "B": 1}


@pytest.mark.asyncio
async def test_insert_at_end_gives_up_with_conflict(session_factory, seed, monkeypatch) -> None:
    manager = OrderedCollectionManager(
        session_factory,
        CourseSection,
        parent_model=Course,
        parent_key="course_id",
        label="Section",
        max_attempts=2,
    )
    course = await seed.course()
    await seed.section(course.course_id, 0, name="A")

    async def always_taken(session, parent_id):
        return 0

    monkeypatch.setattr(manager, "next_order", always_taken)

    with pytest.raises(ConflictError):
        await manager.insert_at_end(course.course_id, name="B")

    assert await _orders(manager, course.course_id) == {"A": 0}


@pytest.mark.asyncio
async def test_delete_leaves_gap_and_append_goes_after_max(sections, seed) -> None:
    course = await seed.course()
    a = await seed.section(course.course_id, 0, name="A")
    b = await seed.section(course.course_id, 1, name="B")
    c = await seed.section(course.course_id, 2, name="C")

    await sections.delete(b.section_id)
    assert await _orders(sections, course.course_id) == {"A": 0, "C": 2}

    d = await sections.insert_at_end(course.course_id, name="D")
    assert d.sort_order == 3

    await sections.reorder(course.course_id, [a.section_id, d.section_id, c.section_id])
    assert await _orders(sections, course.course_id) == {"A": 0, "D": 1, "C": 2}


@pytest.mark.asyncio
async def test_delete_unknown_row(sections) -> None:
    with pytest.raises(NotFoundError):
        await sections.delete(uuid4())


@pytest.mark.asyncio
async def test_move_appends_to_new_parent_and_applies_fields(lessons, seed) -> None:
    course = await seed.course()
    s1 = await seed.section(course.course_id, 0)
    s2 = await seed.section(course.course_id, 1)
    await seed.lesson(s2.section_id, 0, name="X")
    await seed.lesson(s2.section_id, 4, name="Y")
    moving = await seed.lesson(s1.section_id, 0, name="M")

    row = await lessons.move(moving.lesson_id, s2.section_id, name="Moved")

    assert row.section_id == s2.section_id
    assert row.sort_order == 5
    assert await _orders(lessons, s2.section_id) == {"X": 0, "Y": 4, "Moved": 5}
    assert await _orders(lessons, s1.section_id) == {}


@pytest.mark.asyncio
async def test_move_within_same_parent_keeps_position(lessons, seed) -> None:
    course = await seed.course()
    section = await seed.section(course.course_id, 0)
    await seed.lesson(section.section_id, 0, name="A")
    b = await seed.lesson(section.section_id, 1, name="B")
    await seed.lesson(section.section_id, 2, name="C")

    row = await lessons.move(b.lesson_id, section.section_id, name="B2")

    assert row.sort_order == 1
    assert await _orders(lessons, section.section_id) == {"A": 0, "B2": 1, "C": 2}


@pytest.mark.asyncio
async def test_move_unknown_row_or_parent(lessons, seed) -> None:
    course = await seed.course()
    section = await seed.section(course.course_id, 0)
    lesson = await seed.lesson(section.section_id, 0)

    with pytest.raises(NotFoundError, match="Lesson"):
        await lessons.move(uuid4(), section.section_id)
    with pytest.raises(NotFoundError, match="CourseSection"):
        await lessons.move(lesson.lesson_id, uuid4())


@pytest.mark.asyncio
async def test_move_retries_after_losing_position_race(lessons, seed, monkeypatch) -> None:
    course = await seed.course()
    s1 = await seed.section(course.course_id, 0)
    s2 = await seed.section(course.course_id, 1)
    await seed.lesson(s2.section_id, 0, name="A")
    moving = await seed.lesson(s1.section_id, 0, name="M")

    real_next_order = lessons.next_order
    calls = []

    async def stale_then_real(session, parent_id):
        calls.append(parent_id)
        if len(calls) == 1:
            # A stale read from before A landed in the section
            return 0
        return await real_next_order(session, parent_id)

    monkeypatch.setattr(lessons, "next_order", stale_then_real)

    row = await lessons.move(moving.lesson_id, s2.section_id)

    assert len(calls) == 2
    assert row.sort_order == 1
    assert await _orders(lessons, s2.section_id) == {"A": 0, "M": 1}
    assert await _orders(lessons, s1.section_id) == {}
