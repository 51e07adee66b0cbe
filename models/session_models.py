from typing import Dict

# field name -> extracted value, for one analyzed document
FieldMap = Dict[str, str]

# document type -> most recent field map, for one browser session
SessionRecord = Dict[str, FieldMap]
