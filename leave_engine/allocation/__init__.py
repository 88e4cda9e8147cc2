"""Pure day arithmetic: paid/unpaid split and month apportionment."""
