from __future__ import annotations

"""JSON shapes exchanged with the trace producer and written to reports.

`RawRecord` is an undecoded upstream object; decoded values leave the
package as `JSONObject`.
"""

from typing import Mapping, TypeAlias


JSONScalar: TypeAlias = str | int | float | bool | None
JSONValue: TypeAlias = JSONScalar | list["JSONValue"] | dict[str, "JSONValue"]
JSONObject: TypeAlias = dict[str, JSONValue]
RawRecord: TypeAlias = Mapping[str, object]
