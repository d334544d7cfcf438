# monitor/errors.py


class MonitorError(RuntimeError):
    pass


class ConfigError(MonitorError):
    pass


class LaunchError(MonitorError):
    pass


class NavigationError(MonitorError):
    pass


class PageClosedError(MonitorError):
    pass


class EvaluationError(MonitorError):
    pass


class PersistenceError(MonitorError):
    def __init__(self, table: str, detail: str):
        super().__init__(f"insert into {table} failed: {detail}")
        self.table = table
        self.detail = detail
