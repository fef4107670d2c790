"""
clipflow: bounded-concurrency scheduling for media editing operations.

Operations (extract, concatenate, partition) are submitted as tasks to a
TaskScheduler, which admits them FIFO up to a concurrency limit and runs
them through an OperationOrchestrator backed by ffmpeg/ffprobe.
"""

__version__ = "0.1.0"
