from claude_task import main

main()
