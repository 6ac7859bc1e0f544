# run_pipeline.py
import sys
import subprocess
from pathlib import Path

PY = sys.executable  # uses current venv python
ROOT = Path(__file__).resolve().parent

STEPS = [
    ("Refresh ladder players", "collect_players.py"),
    ("Collect new matches", "collect_matches.py"),
]

def run_step(label: str, script: str, extra_args=()):
    script_path = ROOT / script
    if not script_path.exists():
        print(f"[SKIP] {label}: missing {script}")
        return

    print(f"\n=== {label} ===")
    r = subprocess.run([PY, str(script_path), *extra_args], cwd=str(ROOT))
    if r.returncode != 0:
        raise SystemExit(f"\nSTOP: step failed -> {script}")

def main():
    # only flags both steps accept: --regions, --skip-download, --skip-upload
    extra_args = sys.argv[1:]
    for label, script in STEPS:
        run_step(label, script, extra_args)

    print("\nPipeline complete.")

if __name__ == "__main__":
    main()
