import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent / "src" / "staff_attendance"))

from staff_attendance.main import create_app  # noqa: E402

app = create_app()

if __name__ == '__main__':
    app.run(debug=app.config["DEBUG"])
