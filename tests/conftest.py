"""Shared sample documents.

    python -m pytest tests/ -v
"""

import pytest

from rppkit.config import get_settings
from rppkit.templates import set_template

VST2_HEADER = (
    "MnJmZO5e7f4CAAAAAQAAAAAAAAACAAAAAAAAAAIAAAABAAAAAAAAAAIAAAAAAAAAZgEAAAEAAAAAABAA"
)
VST3_HEADER = (
    "oTMVd+9e7f4CAAAAAQAAAAAAAAACAAAAAAAAAAIAAAABAAAAAAAAAAIAAAAAAAAAEgUAAAEAAAD//xAA"
)
DRAGONFLY_STATE = (
    "cHJlc2V0AE1lZGl1bSBDbGVhciBSb29tAABkcnlfbGV2ZWwAODAuMDAwMDAwAGVhcmx5X2xldmVsADEwLjAwMDAwMABlYXJseV9zZW5kADIwLjAwMDAwMABsYXRlX2xl"
    "dmVsADIwLjAwMDAwMABzaXplADkuMDAwMDAwAHdpZHRoADEwMC4wMDAwMDAAcHJlZGVsYXkANDkuMDAwMDAwAGRlY2F5ADIuNDAwMDAwAGRpZmZ1c2UANzAuMDAwMDAw"
    "AHNwaW4AMC44MDAwMDAAd2FuZGVyADQwLjAwMDAwMABpbl9oaWdoX2N1dAAxNjAwMC4wMDAwMDAAZWFybHlfZGFtcAAxMDAwMC4wMDAwMDAAbGF0ZV9kYW1wADk0MDAu"
    "MDAwMDAwAGxvd19ib29zdAA1MC4wMDAwMDAAYm9vc3RfZnJlcQA2MDAuMDAwMDAwAGluX2xvd19jdXQANC4wMDAwMDAAAA=="
)

PROJECT = """<REAPER_PROJECT 0.1 6.13/OSX64 1596785244
  TEMPO 120 4 4
  <NOTES
    |Mix notes
    |  second line
  >
  <TEMPOENVEX
    ACT 0 -1
    PT 0 120 1
  >
  <TRACK {E1B0C5F5-5B8A-4D4E-9A0E-2B6C1C2F3A4B}
    NAME Bass
    VOLPAN 1 -0.5 0.501187 -1
    <VOLENV2
      ACT 1 -1
      PT 0 1 0
      PT 2.5 0.5 5 0 0 0 0.25
    >
    <FXCHAIN
      SHOW 0
      LASTSEL 0
      DOCKED 0
      BYPASS 0 0 0
      <VST "VST: DragonflyRoomReverb-vst (Michael Willis)" DragonflyRoomReverb-vst.so 0 "" 1684435506<56535464667232647261676F6E666C79> ""
        MnJmZO5e7f4CAAAAAQAAAAAAAAACAAAAAAAAAAIAAAABAAAAAAAAAAIAAAAAAAAAZgEAAAEAAAAAABAA
        cHJlc2V0AE1lZGl1bSBDbGVhciBSb29tAABkcnlfbGV2ZWwAODAuMDAwMDAwAGVhcmx5X2xldmVsADEwLjAwMDAwMABlYXJseV9zZW5kADIwLjAwMDAwMABsYXRlX2xl
        dmVsADIwLjAwMDAwMABzaXplADkuMDAwMDAwAHdpZHRoADEwMC4wMDAwMDAAcHJlZGVsYXkANDkuMDAwMDAwAGRlY2F5ADIuNDAwMDAwAGRpZmZ1c2UANzAuMDAwMDAw
        AHNwaW4AMC44MDAwMDAAd2FuZGVyADQwLjAwMDAwMABpbl9oaWdoX2N1dAAxNjAwMC4wMDAwMDAAZWFybHlfZGFtcAAxMDAwMC4wMDAwMDAAbGF0ZV9kYW1wADk0MDAu
        MDAwMDAwAGxvd19ib29zdAA1MC4wMDAwMDAAYm9vc3RfZnJlcQA2MDAuMDAwMDAwAGluX2xvd19jdXQANC4wMDAwMDAAAA==
        AAAQAAAA
      >
      PRESETNAME "Factory Presets: Factory Default"
      FLOATPOS 0 0 0 0
      FXID {7E06E29C-0388-DD4B-9B13-BB5F766225B7}
      <PARMENV 1 0 1 0
        ACT 1 -1
        PT 0 0.5 0
      >
      WAK 0 0
      BYPASS 1 0 0
      <VST "VST3: ReaEQ (Cockos)" reaeq.vst3 0 "" 1997878177{56533345514C7265617065717265617100} ""
        oTMVd+9e7f4CAAAAAQAAAAAAAAACAAAAAAAAAAIAAAABAAAAAAAAAAIAAAAAAAAAEgUAAAEAAAD//xAA
        AAAA
        AAAQAAAA
      >
      FXID {1C2D3E4F-5A6B-4C7D-8E9F-A0B1C2D3E4F5}
      WAK 0 0
    >
    <ITEM
      POSITION 2.66666666666667
      LENGTH 0.33333333333333
      NAME -6db
      <SOURCE WAVE
        FILE media/snare.wav
      >
    >
    <ITEM
      POSITION 0
      LENGTH 2
      NAME 3
      <SOURCE MIDI
        HASDATA 1 960 QN
        E 0 90 3c 60
        E 960 80 3c 00
        E 2880 b0 7b 00
      >
    >
  >
>"""


@pytest.fixture
def project_text():
    return PROJECT


@pytest.fixture(autouse=True)
def _fresh_settings():
    """Settings and the template are process-wide; reset them around each test."""
    get_settings.cache_clear()
    set_template(None)
    yield
    get_settings.cache_clear()
    set_template(None)
