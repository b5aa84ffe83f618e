from .figures import build_comparison_figure, save_figure, summary_text  # noqa: F401
