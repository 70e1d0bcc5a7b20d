"""
Reloj de sesión y token de cancelación.

Todas las partes de la sesión (loop de render, narración, mezcla de audio)
miden el tiempo desde el mismo origen.
"""

import threading
import time
from abc import ABC, abstractmethod


class SessionClock(ABC):
    """Interfaz del reloj: origen único, tiempo transcurrido y cesión entre ticks."""

    def __init__(self, frame_rate: int = 30):
        self.frame_rate = frame_rate
        self.started = False

    @property
    def frame_interval_ms(self) -> float:
        return 1000.0 / self.frame_rate

    @abstractmethod
    def start(self) -> None:
        pass

    @abstractmethod
    def elapsed_ms(self) -> float:
        pass

    @abstractmethod
    def tick(self) -> None:
        """Cede el control hasta el próximo tick."""


class WallClock(SessionClock):
    """Tiempo real: duerme hasta el siguiente límite de frame."""

    def __init__(self, frame_rate: int = 30, monotonic=time.monotonic, sleep=time.sleep):
        super().__init__(frame_rate)
        self._monotonic = monotonic
        self._sleep = sleep
        self._origin = 0.0

    def start(self) -> None:
        self._origin = self._monotonic()
        self.started = True

    def elapsed_ms(self) -> float:
        return (self._monotonic() - self._origin) * 1000.0

    def tick(self) -> None:
        elapsed = self.elapsed_ms()
        next_boundary = (int(elapsed // self.frame_interval_ms) + 1) * self.frame_interval_ms
        wait_ms = next_boundary - elapsed
        if wait_ms > 0:
            self._sleep(wait_ms / 1000.0)


class FrameClock(SessionClock):
    """
    Reloj determinista: cada tick avanza exactamente un frame.
    Genera el video más rápido que tiempo real y siempre con el mismo resultado.
    """

    def __init__(self, frame_rate: int = 30):
        super().__init__(frame_rate)
        self.frame = 0

    def start(self) -> None:
        self.frame = 0
        self.started = True

    def elapsed_ms(self) -> float:
        return self.frame * 1000.0 / self.frame_rate

    def tick(self) -> None:
        self.frame += 1


class CancelToken:
    """Bandera de cancelación que se revisa en cada tick y durante la transcodificación."""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()
