import sys
from pathlib import Path

# Lets test modules share fakes (from test_refine_loop import FakeClient)
sys.path.insert(0, str(Path(__file__).parent))
