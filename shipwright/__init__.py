"""shipwright — deploy containerized workloads, environments and pipelines."""

__version__ = "0.1.0"
