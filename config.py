from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional


BASE_DIR = Path(__file__).resolve().parent
DEFAULT_LEVEL_ID = "0000-0000-02e7-c6d0"
DEFAULT_LEVEL_IDS = [
    "01F8-0000-02A4-58F2",
    "0CEA-0000-0093-CB82",
    "0DE4-0000-02C6-29DC",
    "0E45-0000-0117-C846",
    "0F01-0000-0080-8A27",
    "104C-0000-00FF-59BF",
    "11AF-0000-0169-CC21",
    "138B-0000-0197-94E9",
    "1715-0000-0213-A139",
    "18DB-0000-02B9-467B",
    "1D84-0000-01E1-278F",
    "20BD-0000-01E9-018D",
    "224D-0000-019F-D134",
    "247E-0000-0285-1652",
    "25BD-0000-0293-ACD9",
    "285B-0000-02A3-5474",
    "291A-0000-02B2-E703",
    "296F-0000-0126-A0A2",
    "2978-0000-01AD-BEC5",
    "2BC7-0000-02C5-F135",
    "2BEA-0000-02D3-272F",
    "2C09-0000-0290-D05A",
    "2D17-0000-02BF-82D9",
    "2E2D-0000-011F-47CD",
    "2FA7-0000-03A3-EC1A",
    "2FEB-0000-01DC-BC49",
    "2FFF-0000-01B3-4565",
    "38DF-0000-0278-60A1",
    "3940-0000-00F0-755C",
    "3B38-0000-02A6-14B5",
    "3B9B-0000-02BA-0114",
    "3E3D-0000-01E5-2D1C",
    "3FAF-0000-023D-4AF2",
    "4201-0000-01E1-06F1",
    "43B3-0000-01B1-1591",
    "470D-0000-0354-A9D3",
    "4999-0000-02D5-3E9B",
    "49DA-0000-0082-E79E",
    "4A8F-0000-02D6-479A",
    "4CB1-0000-00CF-5598",
    "4CDB-0000-02A9-1A23",
    "4DD8-0000-0293-FEC5",
    "4FD2-0000-02B8-5664",
    "520A-0000-0122-3891",
    "522F-0000-0179-7C2B",
    "529E-0000-0297-3A25",
    "56F4-0000-02AC-3951",
    "571B-0000-0297-3577",
    "5D04-0000-00BD-4D49",
    "5D3B-0000-0167-1B8E",
    "6226-0000-0248-5B76",
    "6466-0000-0104-0468",
    "669F-0000-00CF-70A9",
    "6822-0000-0299-FECB",
    "68DD-0000-02C6-5185",
    "6A39-0000-02BB-615E",
    "6B29-0000-02A2-D481",
    "6B2E-0000-02A5-D211",
    "6B5B-0000-02D0-24FB",
    "6C1B-0000-01C4-B09F",
    "6F34-0000-03BE-37FA",
    "7393-0000-028C-D856",
    "73F3-0000-028E-7278",
    "7452-0000-0111-1A12",
    "74A8-0000-01C3-6229",
    "7873-0000-00D0-C65A",
    "7A92-0000-019D-DAE6",
    "7B20-0000-01B4-53B3",
    "7B5A-0000-01DB-C2A9",
    "7B7C-0000-025A-A316",
    "80A4-0000-02CD-2005",
    "86D6-0000-030F-77C9",
    "8863-0000-02DF-ACA3",
    "8867-0000-01AE-FF2A",
    "88AC-0000-0199-7710",
    "8944-0000-02D6-2BE9",
    "8A27-0000-02A4-1E14",
    "8A73-0000-01EA-F7AD",
    "8BC3-0000-02E0-B905",
    "8DD0-0000-0224-BE32",
    "8F58-0000-0092-DFE5",
    "90A3-0000-0205-1EFC",
    "95F4-0000-02AE-5103",
    "96DF-0000-0393-EFCC",
    "972D-0000-01C3-359F",
    "9A83-0000-032B-D154",
    "9AFD-0000-01CC-6EDB",
    "9B9F-0000-02A7-CA22",
    "9C57-0000-02BD-829D",
    "9D04-0000-0116-9C81",
    "9D90-0000-01D5-3961",
    "A00F-0000-0384-C368",
    "A048-0000-0099-1F8C",
    "AB0F-0000-029F-3CA2",
    "AB3B-0000-00F2-4065",
    "AC1E-0000-0211-D210",
    "AE4F-0000-02A6-1933",
    "AF02-0000-01B4-B105",
    "B7AB-0000-022F-483E",
    "BDE8-0000-01BD-3A78",
    "BE02-0000-01CB-B0DF",
    "C013-0000-02C6-5BA2",
    "C369-0000-02A6-7287",
    "C82B-0000-004A-51B8",
    "C91A-0000-00B7-B4AA",
    "D05C-0000-0113-6917",
    "D227-0000-02B5-7AC3",
    "D2DE-0000-02C6-7D20",
    "D375-0000-03C4-6EB5",
    "D465-0000-02A0-8D2B",
    "D7BE-0000-01E7-979D",
    "DC4A-0000-0121-8DFA",
    "DE4C-0000-018E-0F8D",
    "DEAF-0000-0286-2F1A",
    "DFA8-0000-0191-BE81",
    "E2B1-0000-010C-FD6E",
    "E2EC-0000-00BE-4C18",
    "E42B-0000-023E-7594",
    "E43A-0000-0397-C3AF",
    "E456-0000-029A-74B4",
    "E52B-0000-02DE-80AB",
    "E87F-0000-028C-67CD",
    "EC7E-0000-02CF-C35C",
    "F202-0000-029E-D87F",
    "F291-0000-01C0-1DEC",
    "F353-0000-03A9-6140",
    "F41F-0000-008A-ACCF",
    "F635-0000-0166-CCFE",
    "FE81-0000-021B-3387",
]


def load_env_file(path: Path) -> None:
    if not path.exists():
        return
    for raw in path.read_text(encoding="utf-8").splitlines():
        line = raw.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, value = line.split("=", 1)
        key = key.strip()
        value = value.strip().strip('"').strip("'")
        if key and key not in os.environ:
            os.environ[key] = value


def _parse_int(value: Optional[str], default: int, min_value: int, max_value: int) -> int:
    raw = (value or "").strip()
    try:
        num = int(raw)
    except ValueError:
        num = default
    return max(min_value, min(num, max_value))


def _parse_float(value: Optional[str], default: float, min_value: float, max_value: float) -> float:
    raw = (value or "").strip()
    try:
        num = float(raw)
    except ValueError:
        num = default
    return max(min_value, min(num, max_value))


def _parse_path(value: Optional[str], default: Path) -> Path:
    raw = (value or "").strip()
    if not raw:
        return default
    return Path(raw).expanduser().resolve()


@dataclass
class Settings:
    output_dir: Path
    compressed_dir: Path
    ashextractor_path: Path
    timeout: int = 45
    retries: int = 10
    backoff: float = 1.0
    levels_url: Optional[str] = None
    log_file: Optional[Path] = None
    level_ids: List[str] = field(default_factory=lambda: list(DEFAULT_LEVEL_IDS))

    def ensure_dirs(self) -> None:
        self.output_dir.mkdir(parents=True, exist_ok=True)
        self.compressed_dir.mkdir(parents=True, exist_ok=True)

    def compressed_path(self, level_id: str) -> Path:
        return self.compressed_dir / f"{level_id}_compressed"


def load_settings(env_path: Optional[Path] = None) -> Settings:
    load_env_file(env_path if env_path is not None else BASE_DIR / ".env")
    levels_url = (os.environ.get("SMM_LEVELS_URL") or "").strip() or None
    log_file = (os.environ.get("SMM_LOG_FILE") or "").strip()
    return Settings(
        output_dir=_parse_path(os.environ.get("SMM_OUTPUT_DIR"), BASE_DIR / "output" / "to_upload"),
        compressed_dir=_parse_path(os.environ.get("SMM_COMPRESSED_DIR"), BASE_DIR / "output" / "compressed_files"),
        ashextractor_path=_parse_path(
            os.environ.get("SMM_ASHEXTRACTOR"),
            BASE_DIR / "SMMDownloader" / "ashextractor.exe",
        ),
        timeout=_parse_int(os.environ.get("SMM_HTTP_TIMEOUT"), 45, 5, 600),
        retries=_parse_int(os.environ.get("SMM_HTTP_RETRIES"), 10, 0, 50),
        backoff=_parse_float(os.environ.get("SMM_HTTP_BACKOFF"), 1.0, 0.0, 60.0),
        levels_url=levels_url,
        log_file=Path(log_file).expanduser() if log_file else None,
    )
