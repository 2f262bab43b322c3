from .writer import JsonlResultSink, run_report_dict, target_report_dict

__all__ = ["JsonlResultSink", "run_report_dict", "target_report_dict"]
