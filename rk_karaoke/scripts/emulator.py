#!/usr/bin/env python3
"""
OSC Emulator - stands in for rkbx_link when testing without rekordbox.

Usage:
    rk-karaoke-emulator                          # interactive
    rk-karaoke-emulator --auto                   # cycle through test tracks
    rk-karaoke-emulator --track "Artist" "Title" # load one track and play
"""

import argparse
import threading
import time
from typing import Any, Optional, Tuple

from pythonosc import udp_client

from ..osc.bridge import ADDR_ARTIST, ADDR_BEAT, ADDR_BPM, ADDR_TIME, ADDR_TITLE

TICK_SEC = 0.1

TEST_TRACKS = [
    ("Daft Punk", "Around The World"),
    ("The Weeknd", "Blinding Lights"),
    ("Dua Lipa", "Levitating"),
    ("Queen", "Bohemian Rhapsody"),
    ("Michael Jackson", "Billie Jean"),
]

HELP = """
Commands:
  load <artist> - <title>   Load track
  play                      Start playback
  pause                     Pause
  seek <seconds>            Jump to time
  bpm <value>               Set BPM
  test                      Load next test track
  quit                      Exit
"""


class Emulator:
    """Sends the master-deck messages rkbx_link would send."""

    def __init__(self, host: str = "127.0.0.1", port: int = 4460,
                 bpm: float = 128.0, client: Optional[Any] = None):
        self._client = client or udp_client.SimpleUDPClient(host, port)
        self.bpm = bpm
        self.time = 0.0
        self.track: Tuple[str, str] = ("", "")
        self._lock = threading.Lock()
        self._stop = threading.Event()
        self._ticker: Optional[threading.Thread] = None

    @property
    def is_playing(self) -> bool:
        return self._ticker is not None and self._ticker.is_alive()

    def send(self, address: str, value: Any) -> None:
        self._client.send_message(address, value)

    def load_track(self, artist: str, title: str) -> None:
        with self._lock:
            self.track = (artist, title)
            self.time = 0.0
        print(f"\n> Loading: {artist} - {title}")
        self.send(ADDR_ARTIST, artist)
        self.send(ADDR_TITLE, title)
        self.send(ADDR_BPM, float(self.bpm))
        self.send(ADDR_TIME, 0.0)

    def tick(self) -> None:
        """Advance playback by one tick and send time + beat."""
        with self._lock:
            self.time += TICK_SEC
            current = self.time
        self.send(ADDR_TIME, float(current))
        self.send(ADDR_BEAT, float(current / (60.0 / self.bpm)))

    def play(self) -> None:
        if self.is_playing:
            return
        self._stop.clear()
        self._ticker = threading.Thread(target=self._run, name="EmulatorTicker", daemon=True)
        self._ticker.start()
        print("> Playing...")

    def pause(self) -> None:
        if not self.is_playing:
            return
        self._stop.set()
        self._ticker.join(timeout=1.0)
        self._ticker = None
        print("|| Paused")

    def seek(self, time_sec: float) -> None:
        with self._lock:
            self.time = time_sec
        self.send(ADDR_TIME, float(time_sec))
        print(f">> Seek to {time_sec:.1f}s")

    def set_bpm(self, bpm: float) -> None:
        self.bpm = bpm
        self.send(ADDR_BPM, float(bpm))
        print(f"BPM: {bpm}")

    def _run(self) -> None:
        while not self._stop.wait(TICK_SEC):
            self.tick()

    def handle_command(self, line: str, test_index: int = 0) -> bool:
        """Run one interactive command. Returns False on quit."""
        text = line.strip()
        parts = text.split()
        if not parts:
            return True
        cmd = parts[0].lower()

        if cmd == "play":
            self.play()
        elif cmd == "pause":
            self.pause()
        elif cmd in ("quit", "exit"):
            self.pause()
            return False
        elif cmd == "test":
            self.load_track(*TEST_TRACKS[test_index % len(TEST_TRACKS)])
        elif cmd == "load":
            artist, sep, title = text[4:].strip().partition(" - ")
            if sep and artist.strip() and title.strip():
                self.load_track(artist.strip(), title.strip())
            else:
                print("Usage: load Artist - Title")
        elif cmd == "seek" and len(parts) > 1:
            self.seek(_to_float(parts[1], 0.0))
        elif cmd == "bpm" and len(parts) > 1:
            self.set_bpm(_to_float(parts[1], 128.0) or 128.0)
        else:
            print('Unknown command. Type "quit" to exit.')
        return True


def _to_float(value: str, default: float) -> float:
    try:
        return float(value)
    except ValueError:
        return default


def auto_mode(emulator: Emulator, play_sec: float = 15.0, gap_sec: float = 2.0) -> None:
    print("Auto mode started")
    for artist, title in TEST_TRACKS:
        emulator.load_track(artist, title)
        emulator.play()
        time.sleep(play_sec)
        emulator.pause()
        time.sleep(gap_sec)
    print("\nAuto mode finished")


def interactive_mode(emulator: Emulator) -> None:
    print(HELP)
    test_index = 0
    while True:
        try:
            line = input("> ")
        except EOFError:
            emulator.pause()
            break
        if line.strip().lower() == "test":
            test_index += 1
        if not emulator.handle_command(line, test_index - 1):
            break


def main():
    parser = argparse.ArgumentParser(description="rkbx_link OSC emulator")
    parser.add_argument("--host", default="127.0.0.1", help="Bridge host (default: 127.0.0.1)")
    parser.add_argument("--port", type=int, default=4460, help="Bridge port (default: 4460)")
    parser.add_argument("--bpm", type=float, default=128.0, help="Initial BPM")
    parser.add_argument("--auto", action="store_true", help="Cycle through test tracks")
    parser.add_argument("--track", nargs=2, metavar=("ARTIST", "TITLE"),
                        help="Load one track and start playing")
    args = parser.parse_args()

    emulator = Emulator(args.host, args.port, args.bpm)
    try:
        if args.auto:
            auto_mode(emulator)
        elif args.track:
            emulator.load_track(*args.track)
            emulator.play()
            while True:
                time.sleep(1.0)
        else:
            interactive_mode(emulator)
    except KeyboardInterrupt:
        emulator.pause()
        print("\nStopped by user")


if __name__ == "__main__":
    main()
