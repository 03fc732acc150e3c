import sys
from pathlib import Path

# Ensure `market_scan` is importable when running pytest without installing the package.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))
