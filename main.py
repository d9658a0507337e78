from __future__ import annotations
import os, sys, time, yaml
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional
from dotenv import load_dotenv

from utils.logging_setup import setup_logger
from sources.control import Checkpoint, ControlEvent, Shutdown, SignalFlags, Tick
from sources.log_follower import LogFollower
from sources.postfix_log import DEFAULT_TAG, parse_line
from detectors.rate_window import RateWindowConfig, RestoreError, WindowAggregator
from notifier.alert_sink import AlertSink
from storage.checkpoint import CheckpointStore
from storage.lock import AlreadyRunningError, PidLock

load_dotenv()

@dataclass
class Config:
    log_path: str = "/var/log/mail.log"
    log_tag: str = DEFAULT_TAG
    checkpoint_path: str = "/var/lib/mailrate/state.json"
    lock_path: str = "/run/mailrate.pid"
    window_seconds: int = 300
    recipient_limit: int = 10
    alert_interval_seconds: int = 60
    poll_interval_secs: float = 1.0
    seek_end: bool = True
    notify_webhook: bool = False
    syslog: Dict[str, Any] = field(default_factory=dict)
    missing_path: Optional[str] = None

    @property
    def rate(self) -> RateWindowConfig:
        return RateWindowConfig(
            window_seconds=self.window_seconds,
            recipient_limit=self.recipient_limit,
            alert_interval_seconds=self.alert_interval_seconds,
        )

def load_config(path: Optional[str] = None) -> Config:
    requested = path or os.getenv("CONFIG_PATH") or "config.yaml"
    missing = None
    path = requested
    if not os.path.exists(path):
        missing = requested
        path = "config.example.yaml"
    if not os.path.exists(path):
        return Config(missing_path=missing)
    with open(path, "r", encoding="utf-8") as f:
        y = yaml.safe_load(f) or {}
    syslog_cfg = y.get("syslog", {}) or {}
    return Config(
        log_path=str(y.get("log_path", "/var/log/mail.log")),
        log_tag=str(y.get("log_tag", DEFAULT_TAG)),
        checkpoint_path=str(y.get("checkpoint_path", "/var/lib/mailrate/state.json")),
        lock_path=str(y.get("lock_path", "/run/mailrate.pid")),
        window_seconds=max(1, int(y.get("window_seconds", 300))),
        recipient_limit=max(0, int(y.get("recipient_limit", 10))),
        alert_interval_seconds=max(1, int(y.get("alert_interval_seconds", 60))),
        poll_interval_secs=max(0.05, float(y.get("poll_interval_secs", 1.0))),
        seek_end=bool(y.get("seek_end", True)),
        notify_webhook=bool(y.get("notify_webhook", False)),
        syslog={
            "enabled": bool(syslog_cfg.get("enabled", False)),
            "address": str(syslog_cfg.get("address", "/dev/log")),
            "facility": str(syslog_cfg.get("facility", "mail")),
        },
        missing_path=missing,
    )

class Monitor:
    """Apply control events to the rate window, one at a time."""

    def __init__(
        self,
        aggregator: WindowAggregator,
        store: CheckpointStore,
        sink: AlertSink,
        log,
        tag: str = DEFAULT_TAG,
        clock: Callable[[], float] = time.time,
    ):
        self.aggregator = aggregator
        self.store = store
        self.sink = sink
        self.log = log
        self.tag = tag
        self.clock = clock

    def restore(self) -> bool:
        try:
            state = self.store.load()
            if state is None:
                self.log.info("Nenhum checkpoint em %s, iniciando vazio", self.store.path)
                return False
            self.aggregator.restore(state)
        except RestoreError as e:
            self.log.warning(f"Checkpoint inválido, iniciando vazio: {e}")
            return False
        except OSError as e:
            self.log.warning(f"Falha ao ler checkpoint, iniciando vazio: {e}")
            return False
        self.log.info(
            "Checkpoint restaurado: %s eventos em %s buckets",
            len(self.aggregator),
            len(self.aggregator.bucket_keys()),
        )
        return True

    def checkpoint(self) -> bool:
        try:
            self.store.save(self.aggregator.snapshot())
        except OSError as e:
            self.log.error(f"Falha ao salvar checkpoint em {self.store.path}: {e}")
            return False
        self.log.info("Checkpoint salvo em %s", self.store.path)
        return True

    def handle(self, event: ControlEvent) -> bool:
        """Process ``event``; return ``False`` once the loop should stop."""

        if isinstance(event, Shutdown):
            self.log.info("Encerrando...")
            self.checkpoint()
            return False
        if isinstance(event, Checkpoint):
            self.checkpoint()
            return True
        if isinstance(event, Tick):
            send = parse_line(event.line, self.tag)
            if send is None:
                return True
            self.sink.matched(event.line)
            decision = self.aggregator.ingest(
                send.sender, send.recipient_count, int(self.clock())
            )
            self.sink.emit(decision)
        return True

def dispatch(monitor: Monitor, events: List[ControlEvent]) -> bool:
    for event in events:
        try:
            if not monitor.handle(event):
                return False
        except Exception as e:
            monitor.log.exception(f"Erro no loop: {e}")
            if isinstance(event, Shutdown):
                return False
    return True

def run_loop(monitor: Monitor, follower: LogFollower, flags: SignalFlags) -> None:
    for line in follower.follow(lambda: flags.shutdown):
        events = flags.drain()
        if line is not None:
            events.append(Tick(line))
        if not dispatch(monitor, events):
            return
    # the follower stopped before the shutdown flag was drained
    dispatch(monitor, flags.drain() + [Shutdown()])

def run() -> int:
    cfg = load_config()
    log = setup_logger(
        syslog=cfg.syslog.get("enabled", False),
        syslog_address=cfg.syslog.get("address", "/dev/log"),
        syslog_facility=cfg.syslog.get("facility", "mail"),
    )
    lock = PidLock(cfg.lock_path)
    try:
        lock.acquire()
    except AlreadyRunningError as e:
        log.error(f"Outra instância já está em execução: {e}")
        return 1

    try:
        if cfg.missing_path:
            log.warning(f"{cfg.missing_path} não encontrado, usando config.example.yaml ou padrões")
        log.info("Iniciando Mail Rate Watch")
        log.info(
            "Janela: %ss | limite: %s destinatários | intervalo de alerta: %ss",
            cfg.window_seconds,
            cfg.recipient_limit,
            cfg.alert_interval_seconds,
        )
        log.info("Acompanhando %s (tag %s)", cfg.log_path, cfg.log_tag)

        monitor = Monitor(
            WindowAggregator(cfg.rate),
            CheckpointStore(cfg.checkpoint_path),
            AlertSink(
                log,
                webhook_url=os.getenv("WEBHOOK_URL"),
                notify_webhook=cfg.notify_webhook,
            ),
            log,
            tag=cfg.log_tag,
        )
        monitor.restore()

        flags = SignalFlags()
        flags.install()
        follower = LogFollower(
            cfg.log_path,
            poll_interval=cfg.poll_interval_secs,
            seek_end=cfg.seek_end,
        )
        run_loop(monitor, follower, flags)
    finally:
        lock.release()
    return 0

if __name__ == "__main__":
    sys.exit(run())
