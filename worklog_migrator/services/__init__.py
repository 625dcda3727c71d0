"""Services: tracker access, reconciliation, staging and migration."""
