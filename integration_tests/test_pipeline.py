"""Integration tests for the full command-line flow.

These drive the ``studio-booking`` CLI end to end against a real SQLite
file: init, users, classes, packages, bookings and attendance.
"""

import re

ID_PATTERN = re.compile(r"ID: ([0-9a-f-]+)\)")
BOOKED_PATTERN = re.compile(r"Booked ([0-9a-f-]+) \(balance now (-?\d+)\)")


def _created_id(result) -> str:
    match = ID_PATTERN.search(result.output)
    assert match, result.output
    return match.group(1)


class TestPipelineIntegration:
    """End-to-end flows through the CLI."""

    def test_commands_need_init(self, cli):
        result = cli("users", "list")

        assert result.exit_code == 1
        assert "not initialized" in result.output

    def test_package_booking_attendance_flow(self, cli):
        assert cli("init").exit_code == 0

        user_id = _created_id(cli("users", "add", "Ana Lopez", "ana@example.com"))
        coach_id = _created_id(
            cli("users", "add", "Coach Kim", "kim@example.com", "--role", "coach")
        )
        template_id = _created_id(cli("packages", "add-template", "Group 4", "4"))
        result = cli("packages", "assign", user_id, template_id, "--months", "3")
        assert result.exit_code == 0, result.output

        class_id = _created_id(
            cli(
                "classes", "add", "Evening Reformer",
                "--time", "18:00",
                "--weekdays", "mon,wed",
                "--from", "2030-01-01",
                "--until", "2030-01-31",
                "--capacity", "1",
            )
        )

        result = cli("bookings", "reserve", user_id, class_id, "--date", "2030-01-07")
        match = BOOKED_PATTERN.search(result.output)
        assert match, result.output
        booking_id, balance = match.group(1), int(match.group(2))
        assert balance == 3

        result = cli("attendance", "mark", booking_id, "present", "--by", coach_id)
        assert result.exit_code == 0, result.output

        result = cli("attendance", "summary", user_id)
        assert "present" in result.output

        result = cli("credits", "show", user_id)
        assert "group" in result.output
        assert "3" in result.output

    def test_overdraft_prompt_and_errors(self, cli):
        cli("init")
        user_id = _created_id(cli("users", "add", "Ben", "ben@example.com"))
        other_id = _created_id(cli("users", "add", "Cy", "cy@example.com"))
        class_id = _created_id(
            cli("classes", "add", "Morning Flow", "--time", "09:00",
                "--date", "2030-01-07", "--capacity", "1")
        )

        result = cli("bookings", "reserve", user_id, class_id, input="n\n")
        assert "Not booked" in result.output

        result = cli("bookings", "reserve", user_id, class_id, input="y\n")
        match = BOOKED_PATTERN.search(result.output)
        assert match, result.output
        assert int(match.group(2)) == -1

        result = cli("bookings", "reserve", other_id, class_id, "--confirm-overdraft")
        assert result.exit_code == 1
        assert "ClassFull" in result.output

        result = cli("bookings", "cancel", match.group(1))
        assert "refunded" in result.output

        result = cli("credits", "show", user_id)
        assert "0" in result.output

    def test_bundle_and_private_request_flow(self, cli):
        cli("init")
        user_id = _created_id(cli("users", "add", "Dee", "dee@example.com"))
        group_id = _created_id(cli("packages", "add-template", "Group 4", "4"))
        private_id = _created_id(
            cli("packages", "add-template", "Private 2", "2", "--category", "private")
        )
        bundle_id = _created_id(
            cli(
                "packages", "add-bundle", "Combo",
                "--group", group_id, "--group-months", "1",
                "--private", private_id, "--private-months", "1",
                "--price", "150",
            )
        )

        result = cli("packages", "assign-bundle", user_id, bundle_id)
        assert result.exit_code == 0, result.output
        assert len(ID_PATTERN.findall(result.output)) == 2

        request_id = _created_id(cli("requests", "add", user_id, "2030-01-08", "07:30"))
        assert request_id in cli("requests", "pending").output

        result = cli("requests", "approve", request_id)
        assert result.exit_code == 0, result.output
        class_id = _created_id(result)
        assert "No pending requests" in cli("requests", "pending").output

        result = cli("classes", "reinstate-class", class_id)
        assert result.exit_code == 1
        assert "ClassNotCancelled" in result.output
