from .classifier import Classifier, ClassifierStats
from .csv_scanner import CsvFileScanner
from .options import ScannerOptions, load_allow_list, load_rules

__all__ = ["Classifier", "ClassifierStats", "CsvFileScanner", "ScannerOptions", "load_allow_list", "load_rules"]
