from fps_monitor.cli import main

main()
