"""Tests for the command-line interface."""

from conftest import MONDAY
from database import operations
import main


def seed():
    operations.init_db()
    project_id = operations.create_new_project("CLI", start_date=MONDAY)
    first = operations.add_project_task(project_id, "Design", duration=2, start=MONDAY)
    second = operations.add_project_task(project_id, "Build", duration=1)
    operations.add_task_dependency(second, first)
    return project_id


class TestCommands:
    def test_schedule(self, db, capsys):
        project_id = seed()
        assert main.main(["schedule", str(project_id), "--save"]) == 0
        output = capsys.readouterr().out
        assert "Критический путь" in output
        assert "Design" in output

    def test_wbs(self, db, capsys):
        project_id = seed()
        assert main.main(["wbs", str(project_id)]) == 0
        assert "2 Build" in capsys.readouterr().out

    def test_baseline_then_evm(self, db, capsys):
        project_id = seed()
        assert main.main(["baseline", str(project_id), "--name", "Initial"]) == 0
        assert main.main(["baseline", str(project_id), "--compare"]) == 0
        assert main.main(["evm", str(project_id), "--status-date", "2024-01-09"]) == 0
        assert "SPI" in capsys.readouterr().out

    def test_level_and_costs(self, db):
        project_id = seed()
        assert main.main(["level", str(project_id)]) == 0
        assert main.main(["costs", str(project_id)]) == 0

    def test_unknown_project(self, db):
        assert main.main(["schedule", "999"]) == 1

    def test_projects(self, db, capsys):
        seed()
        assert main.main(["projects"]) == 0
        assert "CLI" in capsys.readouterr().out
