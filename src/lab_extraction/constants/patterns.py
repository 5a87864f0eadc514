# ============================================================================
# src/lab_extraction/constants/patterns.py
# ============================================================================
"""
Compiled regular expressions shared by the sanitizer, the row strategies
and the date extractor.

All patterns are case-insensitive unless noted.
"""

import re

I = re.IGNORECASE

# ----------------------------------------------------------------------------
# Characters and tokens
# ----------------------------------------------------------------------------

# Arrow / flag glyphs that some lab layouts render next to values
NOISE_SYMBOL_PATTERN = re.compile(r"[ñò↑↓]")

NUMERIC_TOKEN_PATTERN = re.compile(r"^[<>≤≥]?-?\d+(?:[.,]\d+)?$")
DASH_TOKEN_PATTERN = re.compile(r"^[-–]$")
STATUS_TOKEN_PATTERN = re.compile(
    r"^(?:H|L|HIGH|LOW|Within(?:\s+range)?|Above(?:\s+range)?|Below(?:\s+range)?)$", I
)

UNIT_TOKEN_PATTERN = re.compile(
    r"^(?:10(?:\^|\*|x|×)?(?:9|12)\/l|[A-Za-z%µμ/][A-Za-z0-9%µμ/.*^\-²]*)$", I
)
BARE_UNIT_WORD_PATTERN = re.compile(
    r"^(?:mmol|nmol|pmol|pg|ng|mU|mIU|U|IU|mg|g|µg|ug|µmol|umol|fL|fl|fmol|ratio|l\/l|mm\/hr)$", I
)
COMPACT_CELL_COUNT_UNIT_PATTERN = re.compile(r"^10(?:\^|\*|x|×)?(?:9|12)\/l$", I)
LEADING_UNIT_FRAGMENT_PATTERN = re.compile(
    r"^(?:mmol|nmol|pmol|pg|ng|g|mg|µmol|umol|u|mu|miu|fl|fmol|l)\s*\/\s*[a-z0-9µμ%]+\s*", I
)

# ----------------------------------------------------------------------------
# Label cleanup
# ----------------------------------------------------------------------------

SECTION_PREFIX_PATTERN = re.compile(
    r"^(?:nuchter|hematology|clinical chemistry|general chemistry|hormones|vitamins|"
    r"tumor markers|tumour markers|cardial markers|lipids|muscle enzymes|random urine chemistry|"
    r"urine \(micro\)albumin|adrenal function|reproductive and gonadal|serum proteins|"
    r"hemoglobin a1c|haemoglobin a1c|differential|hematologie|klinische chemie|proteine-diagnostiek|"
    r"endocrinologie|schildklier-diagnostiek|bloedbeeld klein|hematologie bloedbeeld klein)\s+",
    I,
)
METHOD_SUFFIX_PATTERN = re.compile(r"\b(?:ECLIA|PHOT|ENZ|NEPH|ISSAM)\b$", I)

# Terms that make a label look like a real lab measurement
MARKER_ANCHOR_PATTERN = re.compile(
    r"\b(?:testosterone|testosteron|estradiol|shbg|hematocrit|hematocriet|lh|fsh|prolactin|prolactine|"
    r"psa|tsh|cholesterol|hdl|ldl|non hdl|triglycerides?|creatinine|urine creatinine|glucose|"
    r"hemoglobine|hemoglobin|hematology|albumine|albumin|mchc|mch|mcv|wbc|platelets?|thrombocyten|"
    r"leukocyten|leucocyten|lymphocytes?|eosinophils?|basophils?|neutrophils?|monocytes?|"
    r"free androgen index|dihydrotestosteron|dihydrotestosterone|vitamin b12|vitamine b12|urea|ureum|"
    r"uric acid|calcium|bilirubin|alkaline phosphatase|gamma gt|alt|ast|ferritin|ferritine|egfr|ck|"
    r"ckd-epi|acr|cortisol|dhea|dhea sulphate|dhea sulfate|sex hormone binding globulin|"
    r"c reactive protein|crp)\b",
    I,
)
SPATIAL_PRIORITY_PATTERN = re.compile(
    r"\b(?:testosterone|testosteron|estradiol|shbg|hematocrit|hematocriet|lh|fsh|dht|"
    r"dihydrotestosterone|prolactin|psa)\b",
    I,
)
HORMONE_SIGNAL_PATTERN = re.compile(
    r"\b(?:testosterone|testosteron|free\s+testosterone|estradiol|shbg|dht|dihydrotestosterone|fsh|lh|hormone)\b",
    I,
)

# ----------------------------------------------------------------------------
# Commentary / narrative text
# ----------------------------------------------------------------------------

COMMENTARY_FRAGMENT_PATTERN = re.compile(
    r"\b(?:for intermediate and high risk individuals|low risk individuals|please interpret results with caution|"
    r"if dexamethasone has been given|for further information please contact|new method effective|"
    r"shown to interfere|changes in serial psa levels|this high sensitivity crp method is sensitive to|"
    r"in presence of significant hypoalbuminemia|is suitable for coronary artery disease assessment)\b",
    I,
)
GUIDANCE_RESULT_PATTERN = re.compile(
    r"\b(?:for\s+(?:intermediate|high|low)\s+risk\s+individuals|individuals?\s+with\s+ldl\s+cholesterol|"
    r"if\s+dexamethasone\s+has\s+been\s+given|this\s+high\s+sensitivity\s+crp\s+method\s+is\s+sensitive\s+to|"
    r"for\s+further\s+information\s+please\s+contact)\b",
    I,
)
COMMENTARY_GUARD_PATTERN = re.compile(
    r"\b(?:high\s+risk\s+individuals?|low\s+risk\s+individuals?|sensitive\s+to|for\s+further\s+information|"
    r"target\s+reduction|please\s+interpret|new\s+method\s+effective)\b",
    I,
)
HISTORY_CALCULATOR_NOISE_PATTERN = re.compile(
    r"\b(?:balance\s*my\s*hormones|tru-?t\.org|issam|free-?testosterone-?calculator|"
    r"free\s+testosterone\s*-\s*calculated|known\s+labcorp\s+unit\s+issue|labcorp\s+test|"
    r"international\s+society\s+for\s+the\s+study\s+of\s+the\s+aging\s+male|roche\s*cobas\s*assay|"
    r"calculated\s+value)\b|https?:\/\/|www\.",
    I,
)
NARRATIVE_NOISE_PATTERN = re.compile(
    r"\b(?:for intermediate and high risk individuals|low risk individuals|sensitive to|please interpret|"
    r"for further information|target reduction|guideline|guidelines|individuals?|method is|"
    r"new method effective|changes in serial|if dexamethasone has been given)\b",
    I,
)
RESOLVER_ANCHOR_PATTERN = re.compile(
    r"\b(?:testosterone|estradiol|shbg|hematocrit|cholesterol|triglycerides?|ferritin|psa|cortisol|"
    r"creatinine|glucose|hemoglobin|wbc|rbc)\b"
)

# ----------------------------------------------------------------------------
# Profiles and layout signatures
# ----------------------------------------------------------------------------

KEYWORD_VALUE_PATTERN = re.compile(r"\b(?:uw|your)\s+waarde:\s*[<>]?\s*\d+(?:[.,]\d+)?", I)
KEYWORD_RANGE_LABEL_PATTERN = re.compile(r"\b(?:normale\s+waarde|normal\s+range|reference\s+range)\s*:", I)
PROFILE_LINE_NOISE_PATTERN = re.compile(
    r"\b(?:patient details|requesting physician|clinical history|interpretation|notes?|daily free cortisol pattern)\b",
    I,
)
DEFAULT_LINE_NOISE_PATTERN = re.compile(
    r"\b(?:patient details|requesting physician|clinical history|interpretation|notes?)\b", I
)

LIFELABS_HEADER_PATTERN = re.compile(r"\bTest\s+Flag\s+Result\s+Reference\s+Range\s*-\s*Units\b", I)
LIFELABS_END_PATTERN = re.compile(
    r"^(?:FINAL RESULTS|This report contains confidential information intended for view|"
    r"Note to physicians:|Note to patients:)\b",
    I,
)
LIFELABS_CONTINUATION_PATTERN = re.compile(
    r"^(?:for|if|this|that|see|indicates|therapeutic|units for|kidney function|assumption|clinical state|"
    r"accuracy|adults?:|children:|persistently|target reduction|new method|changes in serial|"
    r"interpretation:|no reference range|a1c\s*[<>]=?)\b",
    I,
)

HISTORY_BASELINE_PATTERN = re.compile(r"\bbaseline\b", I)
HISTORY_PER_WEEK_PATTERN = re.compile(r"\bper\s+week\b", I)
HISTORY_FREE_CALC_PATTERN = re.compile(r"\bfree\s+testosterone\s*-\s*calculated\b", I)

URL_PATTERN = re.compile(r"https?:\/\/|www\.", I)

# ----------------------------------------------------------------------------
# Dates
# ----------------------------------------------------------------------------

YMD_DATE_PATTERN = re.compile(
    r"\b(20\d{2})\s*[./-]\s*(0?[1-9]|1[0-2])\s*[./-]\s*(0?[1-9]|[12]\d|3[01])\b"
)
DMY_DATE_PATTERN = re.compile(r"\b([0-3]?\d)\s*[./-]\s*([01]?\d)\s*[./-]\s*(\d{2,4})\b")
ISO_DATE_PATTERN = re.compile(
    r"\b(20\d{2})\s*[-/.]\s*(0[1-9]|1[0-2])\s*[-/.]\s*(0[1-9]|[12]\d|3[01])\b"
)
DATE_CONTEXT_HINT_PATTERN = re.compile(
    r"\b(?:sample\s*(?:draw|collection|date)|collection\s*times?|date\s*collected|collected|"
    r"afname(?:datum)?|monster\s*afname|materiaal\s*afname|sample\s*taken)\b",
    I,
)
RECEIPT_CONTEXT_PATTERN = re.compile(r"\b(?:arrival|received|ontvangst|materiaal\s*ontvangst)\b", I)
REPORT_CONTEXT_PATTERN = re.compile(
    r"\b(?:report\s*date|print\s*date|datum\s*afdruk|issued|validated|result\s*date)\b", I
)
COLLECTED_LABEL_PATTERN = re.compile(
    r"\b(?:date\s*collected|collected|sample\s*(?:draw|collection|date)|collection\s*times?|"
    r"afname(?:datum)?|monster\s*afname|materiaal\s*afname)\b[^0-9]{0,30}([0-9][0-9\s./-]{6,20})",
    I,
)
ARRIVAL_LABEL_PATTERN = re.compile(
    r"\b(?:arrival|arrival\s*date|received|ontvangst|materiaal\s*ontvangst)\b[^0-9]{0,30}([0-9][0-9\s./-]{6,20})",
    I,
)
DATUM_LABEL_PATTERN = re.compile(r"\bdatum\s*:", I)
PRIORITY_COLLECTION_DATE_PATTERN = re.compile(
    r"(?:sample\s*draw|date\s*collected|monster\s*afname|monster\s*afname:|afname|sample\s*collection|"
    r"collection\s*date)[^0-9]{0,40}([0-3]?\d)\s*[./-]\s*([01]?\d)\s*[./-]\s*(\d{2,4})",
    I,
)
PRIORITY_ARRIVAL_DATE_PATTERN = re.compile(
    r"(?:arrival\s*date,?\s*time|arrival\s*date|materiaal\s*ontvangst|ontvangst)[^0-9]{0,40}"
    r"([0-3]?\d)\s*[./-]\s*([01]?\d)\s*[./-]\s*(\d{2,4})",
    I,
)
