"""Console notifier: the reference delivery channel for alerts."""

from datetime import datetime


class ConsoleNotifier:
    """Prints alerts to stdout. Any object with the same three methods can replace it."""

    def __init__(self, stream=None):
        self.stream = stream
        self.rain_alert_active = False

    def _emit(self, text: str):
        stamp = datetime.now().strftime("%H:%M")
        print(f"[{stamp}] {text}", file=self.stream)

    def notify_rain_alert(self, minutes_until_rain: int):
        self.rain_alert_active = True
        if minutes_until_rain <= 0:
            self._emit("RAIN ALERT: rain is expected now. Bring in your laundry!")
        else:
            self._emit(
                f"RAIN ALERT: rain expected in about {minutes_until_rain} minutes. "
                "Bring in your laundry!"
            )

    def notify_general(self, title: str, message: str):
        self._emit(f"{title}: {message}")

    def cancel_rain_alert(self):
        if self.rain_alert_active:
            self._emit("(rain alert dismissed)")
        self.rain_alert_active = False
