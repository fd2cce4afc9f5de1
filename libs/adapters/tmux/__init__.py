from .fakes import FakePaneProbe, RecordingCommandSink
from .tmux import SPAWN_KEY_ENV, TmuxCommandSink, TmuxPaneProbe

__all__ = [
    "SPAWN_KEY_ENV",
    "FakePaneProbe",
    "RecordingCommandSink",
    "TmuxCommandSink",
    "TmuxPaneProbe",
]
