"""
Dental Marketing Analyzer

Marketing analytics for dental clinics:
1. Assembles review, web analytics, competitor, patient and measure data
2. Detects issues with threshold rules and computes 0-100 scores
3. Asks an LLM for a narrative analysis and proposed services
4. Stores every run as an append-only analysis history
"""

__version__ = "0.1.0"
