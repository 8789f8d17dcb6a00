"""Client for log service projects: logstores, machine groups, logtail configs and service logging."""

__version__ = "0.1.0"