import subprocess
import sys
from pathlib import Path

import pytest

BACKEND_ROOT = Path(__file__).resolve().parents[2]


@pytest.mark.parametrize(
	"module",
	["moddesk.main", "moddesk.api.errors", "moddesk.moderation", "moddesk.moderation.api.items"],
)
def test_module_imports_in_fresh_interpreter(module):
	# conftest has already imported the app, so import order is only exercised in a clean process
	proc = subprocess.run(
		[sys.executable, "-c", f"import {module}"],
		cwd=BACKEND_ROOT,
		capture_output=True,
		text=True,
		timeout=60,
	)
	assert proc.returncode == 0, proc.stderr


def test_app_level_error_handlers_do_not_depend_on_moderation():
	source = (BACKEND_ROOT / "moddesk" / "api" / "errors.py").read_text()
	assert "moddesk.moderation" not in source
