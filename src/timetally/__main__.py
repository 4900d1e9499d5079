from timetally.cli import main

main()
