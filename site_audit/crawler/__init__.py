"""site_audit.crawler: движок обхода (нормализация URL, robots.txt, загрузка, анализ, планировщик)."""
