from ci_chat_bot.cli import main

main()
