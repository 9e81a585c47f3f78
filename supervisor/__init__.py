from supervisor.process_supervisor import ManagedProcess, ProcessState, ProcessSupervisor, ReadinessLatch

__all__ = ["ManagedProcess", "ProcessState", "ProcessSupervisor", "ReadinessLatch"]
