try:
    from kuber.speech.vosk_device import VoskCaptureDevice
except (ModuleNotFoundError, OSError):  # pragma: no cover - optional dependency
    VoskCaptureDevice = None  # type: ignore[assignment,misc]

__all__ = ["VoskCaptureDevice"]
