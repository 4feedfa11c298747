"""HTTP interface of the exits bounded context."""
