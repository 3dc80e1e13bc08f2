"""Pure utilities shared by the payroll packages."""
