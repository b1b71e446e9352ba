"""
test_directory.py — Tests for the teacher/student directory.

Covers:
    • bcrypt password helpers
    • register_teacher / add_student, duplicate usernames
    • authenticate for teacher, student and admin roles
    • students_in_class (single class and ALL)
    • bulk_insert with per-row outcomes
    • Roster CSV parsing (aliases, missing fields, default class)

Run with:
    pytest tests/test_directory.py -v
"""

from __future__ import annotations

import pytest

from drillalert.core.errors import AuthenticationError, ConflictError, ValidationError
from drillalert.directory.csv_import import parse_roster, parse_rows
from drillalert.directory.models import StudentEntry
from drillalert.directory.passwords import hash_password, verify_password
from drillalert.directory.service import DirectoryService


@pytest.fixture
def directory(session_factory) -> DirectoryService:
    return DirectoryService(session_factory, bulk_concurrency=3, default_class="ClassA")


def _make_student(
    username: str = "1RV21CS001",
    password: str = "2008-04-12",
    name: str = "Asha",
    class_name: str = "ClassA",
    parent_phone: str = "+919876543210",
    row: int = None,
) -> StudentEntry:
    """Create a test roster entry."""
    return StudentEntry(
        username=username,
        password=password,
        name=name,
        class_name=class_name,
        parent_phone=parent_phone,
        row=row,
    )


# ═══════════════════════════════════════════════════════════════════════════
# Section 1: Passwords
# ═══════════════════════════════════════════════════════════════════════════

class TestPasswords:
    """Test bcrypt helpers."""

    def test_hash_verifies(self):
        hashed = hash_password("secret", rounds=4)
        assert hashed != "secret"
        assert verify_password("secret", hashed)
        assert not verify_password("wrong", hashed)

    def test_malformed_hash_never_matches(self):
        assert verify_password("secret", "not-a-bcrypt-hash") is False

    def test_empty_password_rejected(self):
        with pytest.raises(ValidationError):
            hash_password("")

    def test_password_over_72_bytes_rejected(self):
        with pytest.raises(ValidationError) as exc_info:
            hash_password("x" * 73, rounds=4)
        assert exc_info.value.details == {"field": "password"}

    def test_multibyte_password_measured_in_bytes(self):
        # 25 three-byte characters, 75 bytes
        with pytest.raises(ValidationError):
            hash_password("\u20ac" * 25, rounds=4)
        assert hash_password("\u20ac" * 24, rounds=4)


# ═══════════════════════════════════════════════════════════════════════════
# Section 2: Accounts and login
# ═══════════════════════════════════════════════════════════════════════════

class TestRegistration:
    """Test register_teacher / add_student."""

    async def test_register_teacher(self, directory):
        teacher_id = await directory.register_teacher("mrao", "pw", "Mrs Rao")
        row = await directory.find_user("teachers", "mrao")
        assert row.id == teacher_id
        assert row.password != "pw"
        assert row.is_admin is False

    async def test_duplicate_teacher(self, directory):
        await directory.register_teacher("mrao", "pw")
        with pytest.raises(ConflictError) as exc_info:
            await directory.register_teacher("mrao", "other")
        assert exc_info.value.message == "Teacher already exists"

    async def test_add_student_defaults_class(self, directory):
        await directory.add_student(StudentEntry(username="u1", password="dob"))
        row = await directory.find_user("students", "u1")
        assert row.class_name == "ClassA"
        assert row.name == "u1"
        assert row.parent_phone is None

    async def test_duplicate_student(self, directory):
        await directory.add_student(_make_student())
        with pytest.raises(ConflictError):
            await directory.add_student(_make_student())

    async def test_missing_password(self, directory):
        with pytest.raises(ValidationError):
            await directory.add_student(StudentEntry(username="u1", password=""))

    async def test_unknown_table(self, directory):
        with pytest.raises(ValidationError):
            await directory.find_user("parents", "x")


class TestAuthenticate:
    """Test DirectoryService.authenticate."""

    async def test_student_login(self, directory):
        student_id = await directory.add_student(_make_student())
        user = await directory.authenticate("student", "1RV21CS001", "2008-04-12")
        assert user.id == student_id
        assert user.role == "student"
        assert user.to_dict()["class"] == "ClassA"
        assert "password" not in user.to_dict()

    async def test_teacher_login(self, directory):
        await directory.register_teacher("mrao", "pw", "Mrs Rao")
        user = await directory.authenticate("teacher", "mrao", "pw")
        assert user.name == "Mrs Rao"
        assert user.class_name is None

    async def test_unknown_user(self, directory):
        with pytest.raises(AuthenticationError) as exc_info:
            await directory.authenticate("teacher", "nobody", "pw")
        assert exc_info.value.message == "User not found"

    async def test_wrong_password(self, directory):
        await directory.register_teacher("mrao", "pw")
        with pytest.raises(AuthenticationError) as exc_info:
            await directory.authenticate("teacher", "mrao", "nope")
        assert exc_info.value.message == "Wrong password"

    async def test_admin_requires_flag(self, directory):
        await directory.register_teacher("mrao", "pw")
        await directory.register_teacher("head", "pw", is_admin=True)
        with pytest.raises(AuthenticationError):
            await directory.authenticate("admin", "mrao", "pw")
        user = await directory.authenticate("admin", "head", "pw")
        assert user.role == "admin"

    async def test_unknown_role(self, directory):
        with pytest.raises(ValidationError):
            await directory.authenticate("parent", "x", "y")


class TestStudentsInClass:
    """Test DirectoryService.students_in_class."""

    async def test_filters_by_class(self, directory):
        await directory.add_student(_make_student("a1", class_name="ClassA"))
        await directory.add_student(_make_student("b1", class_name="ClassB"))
        students = await directory.students_in_class("ClassA")
        assert [s.username for s in students] == ["a1"]

    async def test_all_returns_everyone(self, directory):
        await directory.add_student(_make_student("a1", class_name="ClassA"))
        await directory.add_student(_make_student("b1", class_name="ClassB"))
        students = await directory.students_in_class("ALL")
        assert {s.username for s in students} == {"a1", "b1"}


# ═══════════════════════════════════════════════════════════════════════════
# Section 3: Bulk import
# ═══════════════════════════════════════════════════════════════════════════

class TestBulkInsert:
    """Test DirectoryService.bulk_insert."""

    async def test_inserts_all_valid_rows(self, directory):
        entries = [_make_student(f"u{i}", row=i) for i in range(1, 6)]
        result = await directory.bulk_insert(entries)
        assert result.inserted == 5
        assert result.errors == []
        assert len(await directory.students_in_class("ClassA")) == 5

    async def test_duplicate_row_reported(self, directory):
        await directory.add_student(_make_student("u2"))
        entries = [_make_student(f"u{i}", row=i) for i in range(1, 4)]

        result = await directory.bulk_insert(entries)

        assert result.inserted == 2
        assert [e.to_dict() for e in result.errors] == [
            {"row": 2, "username": "u2", "reason": "Student exists"},
        ]

    async def test_overlong_password_reported_per_row(self, directory):
        entries = [
            _make_student("u1", row=1),
            _make_student("u2", password="9" * 80, row=2),
            _make_student("u3", row=3),
        ]

        result = await directory.bulk_insert(entries)

        assert result.inserted == 2
        assert [(e.row, e.username) for e in result.errors] == [(2, "u2")]
        assert "72 bytes" in result.errors[0].reason
        usernames = {s.username for s in await directory.students_in_class("ClassA")}
        assert usernames == {"u1", "u3"}

    async def test_position_used_when_row_missing(self, directory):
        result = await directory.bulk_insert([_make_student("u1"), StudentEntry("u2", "")])
        assert result.inserted == 1
        assert result.errors[0].row == 2


class TestRosterParsing:
    """Test roster CSV parsing."""

    def test_standard_columns(self):
        content = (
            "USN,Name,DOB,Class,ParentPhone\n"
            "1RV21CS001,Asha,2008-04-12,ClassB,+919876543210\n"
        ).encode()
        roster = parse_roster(content, "ClassA")
        [entry] = roster.entries
        assert entry.username == "1RV21CS001"
        assert entry.password == "2008-04-12"
        assert entry.class_name == "ClassB"
        assert entry.parent_phone == "+919876543210"
        assert entry.row == 1

    def test_lowercase_aliases_and_bom(self):
        content = "\ufeffusername,name,dob,class,parent\nu1,Ravi,2008-01-01,CLASS9,555\n".encode("utf-8")
        [entry] = parse_roster(content, "ClassA").entries
        assert entry.username == "u1"
        assert entry.class_name == "CLASS9"
        assert entry.parent_phone == "555"

    def test_missing_class_uses_default(self):
        [entry] = parse_rows([{"USN": "u1", "DOB": "2008-01-01"}], "ClassA").entries
        assert entry.class_name == "ClassA"
        assert entry.name == "u1"

    def test_missing_usn_or_dob(self):
        roster = parse_rows(
            [
                {"USN": "u1", "DOB": "2008-01-01"},
                {"USN": "u2", "DOB": ""},
                {"USN": "", "DOB": "2008-01-01"},
            ],
            "ClassA",
        )
        assert len(roster.entries) == 1
        assert [(e.row, e.reason) for e in roster.errors] == [
            (2, "Missing USN or DOB"),
            (3, "Missing USN or DOB"),
        ]
