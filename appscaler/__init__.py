"""AppScaler resource types, a reconciler that scales deployments to their replica count, and a manager that runs it."""

__version__ = "0.0.1"