import pytest

from taskboard.errors import AuthorizationError, ValidationError
from taskboard.services.queries import TaskFilters

from conftest import new_task


async def test_keyset_pagination(manager, seed):
    alice = seed.users["alice"]
    tasks = [await new_task(manager, seed, f"Task {i}") for i in range(3)]

    first = await manager.get_all_tasks(TaskFilters(workspace_id=seed.workspace_id, limit=2), alice)
    assert [t.id for t in first.tasks] == [tasks[0].id, tasks[1].id]
    assert first.count == 2
    assert first.has_more is True
    assert first.next_cursor == tasks[1].id

    second = await manager.get_all_tasks(
        TaskFilters(workspace_id=seed.workspace_id, limit=2, cursor=first.next_cursor), alice
    )
    assert [t.id for t in second.tasks] == [tasks[2].id]
    assert second.has_more is False
    assert second.next_cursor is None


async def test_exact_page_has_no_more(manager, seed):
    for i in range(2):
        await new_task(manager, seed, f"Task {i}")

    page = await manager.get_all_tasks(TaskFilters(workspace_id=seed.workspace_id, limit=2), seed.users["alice"])

    assert page.count == 2
    assert page.has_more is False
    assert page.next_cursor is None


async def test_search_is_case_insensitive_on_title_and_description(manager, seed):
    alice = seed.users["alice"]
    login = await new_task(manager, seed, "Fix login bug")
    navbar = await new_task(manager, seed, "Polish header", description="Update the navbar spacing")
    await new_task(manager, seed, "Unrelated")

    page = await manager.get_all_tasks(TaskFilters(workspace_id=seed.workspace_id, search="login"), alice)
    assert [t.id for t in page.tasks] == [login.id]

    page = await manager.get_all_tasks(TaskFilters(workspace_id=seed.workspace_id, search="NAVBAR"), alice)
    assert [t.id for t in page.tasks] == [navbar.id]


async def test_search_wildcards_match_literally(manager, seed):
    alice = seed.users["alice"]
    discount = await new_task(manager, seed, "Apply 50% discount")
    await new_task(manager, seed, "Apply 500 credits")
    snake = await new_task(manager, seed, "rename user_id column")
    await new_task(manager, seed, "rename userXid column")

    page = await manager.get_all_tasks(TaskFilters(workspace_id=seed.workspace_id, search="50%"), alice)
    assert [t.id for t in page.tasks] == [discount.id]

    page = await manager.get_all_tasks(TaskFilters(workspace_id=seed.workspace_id, search="user_id"), alice)
    assert [t.id for t in page.tasks] == [snake.id]


async def test_filters_are_combined(manager, seed):
    users = seed.users
    match = await new_task(manager, seed, "Match", category="doing", priority="high", assignee_ids=[users["bob"]])
    await new_task(manager, seed, "Wrong category", priority="high", assignee_ids=[users["bob"]])
    await new_task(manager, seed, "Wrong priority", category="doing", priority="low", assignee_ids=[users["bob"]])
    await new_task(manager, seed, "Wrong assignee", category="doing", priority="high", assignee_ids=[users["carol"]])

    page = await manager.get_all_tasks(
        TaskFilters(
            workspace_id=seed.workspace_id,
            category_id=seed.categories["doing"],
            priority="high",
            assignee_ids=(users["bob"],),
        ),
        users["alice"],
    )

    assert [t.id for t in page.tasks] == [match.id]


async def test_assignee_filter_matches_any(manager, seed):
    users = seed.users
    bobs = await new_task(manager, seed, "Bob's", assignee_ids=[users["bob"]])
    carols = await new_task(manager, seed, "Carol's", assignee_ids=[users["carol"], users["dave"]])
    await new_task(manager, seed, "Nobody's")

    page = await manager.get_all_tasks(
        TaskFilters(workspace_id=seed.workspace_id, assignee_ids=(users["bob"], users["carol"])), users["alice"]
    )

    assert [t.id for t in page.tasks] == [bobs.id, carols.id]


async def test_status_filter(manager, seed):
    done = await new_task(manager, seed, "Done", status="completed")
    await new_task(manager, seed, "Open")

    page = await manager.get_all_tasks(
        TaskFilters(workspace_id=seed.workspace_id, status="completed"), seed.users["alice"]
    )

    assert [t.id for t in page.tasks] == [done.id]


async def test_invalid_filter_values(manager, seed):
    with pytest.raises(ValidationError):
        await manager.get_all_tasks(TaskFilters(workspace_id=seed.workspace_id, status="done"), seed.users["alice"])
    with pytest.raises(ValidationError):
        await manager.get_all_tasks(TaskFilters(workspace_id=seed.workspace_id, priority="meh"), seed.users["alice"])


@pytest.mark.parametrize("limit", [0, -1, 101])
async def test_limit_out_of_range_rejected(manager, seed, limit):
    await new_task(manager, seed, "Only task")

    with pytest.raises(ValidationError):
        await manager.get_all_tasks(TaskFilters(workspace_id=seed.workspace_id, limit=limit), seed.users["alice"])


async def test_limit_bounds_are_inclusive(manager, seed):
    alice = seed.users["alice"]
    tasks = [await new_task(manager, seed, f"Task {i}") for i in range(2)]

    page = await manager.get_all_tasks(TaskFilters(workspace_id=seed.workspace_id, limit=1), alice)
    assert [t.id for t in page.tasks] == [tasks[0].id]
    assert page.next_cursor == tasks[0].id

    page = await manager.get_all_tasks(TaskFilters(workspace_id=seed.workspace_id, limit=100), alice)
    assert page.count == 2
    assert page.has_more is False


async def test_listing_is_scoped_to_members(manager, seed):
    await new_task(manager, seed, "Private")

    with pytest.raises(AuthorizationError):
        await manager.get_all_tasks(TaskFilters(workspace_id=seed.workspace_id), seed.users["olga"])

    page = await manager.get_all_tasks(TaskFilters(workspace_id=seed.other_workspace_id), seed.users["olga"])
    assert page.tasks == []
