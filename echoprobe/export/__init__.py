"""Result reporting and export."""
