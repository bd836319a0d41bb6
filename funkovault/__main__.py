from funkovault.main import main

main()
