"""Tests for target roles, benchmarks, and stored readiness."""

import pytest

import roles
from errors import WorkflowError
from schemas import Benchmark, Role


def benchmark(skill_id, weight, **extra):
    return Benchmark(skill_id=skill_id, skill_name=skill_id.title(), weight=weight, **extra)


@pytest.fixture
def role_id():
    return roles.create_role(Role(name="Data Analyst", benchmarks=[benchmark("sql", 60)]))


class TestBenchmarks:
    def test_create_role_over_limit_refused(self, mongo):
        with pytest.raises(WorkflowError) as exc:
            roles.create_role(Role(name="Too Heavy", benchmarks=[benchmark("a", 60), benchmark("b", 50)]))
        assert exc.value.status_code == 422
        assert mongo["role"].count_documents({}) == 0

    def test_add_over_limit_refused(self, role_id, mongo):
        with pytest.raises(WorkflowError, match="cannot exceed 100"):
            roles.add_benchmark(role_id, benchmark("python", 41))
        assert len(mongo["role"].find_one({})["benchmarks"]) == 1

    def test_add_up_to_limit(self, role_id):
        role = roles.add_benchmark(role_id, benchmark("python", 40))
        assert sum(b["weight"] for b in role["benchmarks"]) == 100

    def test_inactive_weight_is_not_counted(self, role_id):
        role = roles.add_benchmark(role_id, benchmark("python", 60, is_active=False))
        assert len(role["benchmarks"]) == 2

    def test_duplicate_skill_refused(self, role_id):
        with pytest.raises(WorkflowError) as exc:
            roles.add_benchmark(role_id, benchmark("sql", 10))
        assert exc.value.status_code == 409

    def test_update_checks_total(self, role_id, mongo):
        bench_id = str(mongo["role"].find_one({})["benchmarks"][0]["_id"])
        roles.add_benchmark(role_id, benchmark("python", 30))

        with pytest.raises(WorkflowError):
            roles.update_benchmark(role_id, bench_id, {"weight": 80})
        updated = roles.update_benchmark(role_id, bench_id, {"weight": 70, "requiredLevel": "advanced"})
        sql = next(b for b in updated["benchmarks"] if b["skillId"] == "sql")
        assert sql["weight"] == 70
        assert sql["requiredLevel"] == "advanced"

    def test_remove(self, role_id, mongo):
        bench_id = str(mongo["role"].find_one({})["benchmarks"][0]["_id"])
        assert roles.remove_benchmark(role_id, bench_id)["benchmarks"] == []

    def test_replace_is_all_or_nothing(self, role_id, mongo):
        with pytest.raises(WorkflowError):
            roles.replace_benchmarks(role_id, [benchmark("a", 70), benchmark("b", 70)])
        assert [b["skillId"] for b in mongo["role"].find_one({})["benchmarks"]] == ["sql"]


class TestReadiness:
    def test_requires_target_role(self, make_user):
        with pytest.raises(WorkflowError, match="target role"):
            roles.calculate_for_user(make_user("Asha"))

    def test_calculate_stores_snapshot_and_sends_first_email(self, make_user, mongo):
        user = make_user("Asha")
        skill_id = str(mongo["skill"].insert_one({"name": "SQL", "isActive": True}).inserted_id)
        role_id = roles.create_role(Role(name="Data Analyst", benchmarks=[benchmark(skill_id, 50)]))
        mongo["userskill"].insert_one({
            "userId": str(user["_id"]), "skillId": skill_id, "level": "advanced",
            "source": "validated", "validationStatus": "validated",
        })

        result = roles.calculate_for_user(user, role_id)

        assert result["percentage"] == 75.0
        assert mongo["readinesssnapshot"].count_documents({"userId": str(user["_id"])}) == 1
        assert mongo["emailoutbox"].count_documents({"event": "READINESS_FIRST"}) == 1

        # Second calculation with no change sends nothing new
        roles.calculate_for_user(user, role_id)
        assert mongo["emailoutbox"].count_documents({}) == 1
        assert len(roles.readiness_history(str(user["_id"]))) == 2

    def test_major_improvement_email(self, make_user, mongo):
        user = make_user("Asha")
        role_id = roles.create_role(Role(name="Analyst", benchmarks=[benchmark("sql", 50)]))
        roles.calculate_for_user(user, role_id)
        mongo["userskill"].insert_one({
            "userId": str(user["_id"]), "skillId": "sql", "level": "expert", "source": "self", "validationStatus": "none",
        })

        roles.calculate_for_user(user, role_id)
        assert mongo["emailoutbox"].count_documents({"event": "READINESS_MAJOR_IMPROVEMENT"}) == 1


def test_set_target_role(make_user, role_id, mongo):
    user = make_user("Asha")
    roles.set_target_role(user, role_id)

    stored = mongo["user"].find_one({"_id": user["_id"]})
    assert stored["profile"]["targetRoleId"] == role_id
    assert mongo["notification"].find_one({"type": "role_changed"})["metadata"]["roleName"] == "Data Analyst"
    assert mongo["emailoutbox"].find_one({"event": "ROLE_SELECTED"}) is not None


def test_list_roles_hides_inactive(role_id):
    roles.update_role(role_id, {"isActive": False})
    assert roles.list_roles() == []
    assert len(roles.list_roles(include_inactive=True)) == 1
